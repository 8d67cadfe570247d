"""Logging setup and verbosity levels for memvid-cli."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import IntEnum

LOG_LEVEL_ENV_VAR = "MEMVID_LOG_LEVEL"


class Verbosity(IntEnum):
    """Verbosity levels for diagnostic output on stderr."""

    QUIET = -1    # Errors only
    DEFAULT = 0   # + warnings (degraded search, skipped frames)
    VERBOSE = 1   # + store open/commit events
    DEBUG = 2     # + per-frame scan details


_LOGGING_LEVELS = {
    Verbosity.QUIET: logging.ERROR,
    Verbosity.DEFAULT: logging.WARNING,
    Verbosity.VERBOSE: logging.INFO,
    Verbosity.DEBUG: logging.DEBUG,
}


def verbosity_from_env(environ: Mapping[str, str] | None = None) -> Verbosity:
    """Read $MEMVID_LOG_LEVEL; unknown values fall back to DEFAULT."""
    env = os.environ if environ is None else environ
    raw = env.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    if raw in Verbosity.__members__:
        return Verbosity[raw]
    return Verbosity.DEFAULT


def setup_logging(verbosity: Verbosity = Verbosity.DEFAULT) -> None:
    """Configure the root logger based on verbosity."""
    logging.basicConfig(
        level=_LOGGING_LEVELS[verbosity],
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
