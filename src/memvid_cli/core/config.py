"""Configuration resolution — CLI > env > defaults."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

MEMORY_ENV_VAR = "MEMVID_MEMORY"
DEFAULT_MEMORY_DIR = ".memvid"
DEFAULT_MEMORY_FILE = "claude.mv2"


def home_dir(environ: Mapping[str, str] | None = None) -> str:
    """Return $HOME, or "." when it is not set."""
    env = os.environ if environ is None else environ
    return env.get("HOME", ".")


def expand_home(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand a leading ``~`` to the home directory.

    Only the first character is replaced; any later ``~`` is kept as is.
    """
    if value.startswith("~"):
        return home_dir(environ) + value[1:]
    return value


@dataclass(frozen=True)
class PathResolver:
    """Locates the active memory file.

    Precedence, highest first:

    1. ``override`` — the ``--memory`` flag, already expanded by the router.
    2. ``$MEMVID_MEMORY``.
    3. ``$HOME/.memvid/claude.mv2``.

    The override is fixed at construction; resolution reads the environment
    and nothing else.
    """

    override: Path | None = None
    environ: Mapping[str, str] | None = None

    def resolve(self) -> Path:
        if self.override is not None:
            return Path(self.override)

        env = os.environ if self.environ is None else self.environ
        env_path = env.get(MEMORY_ENV_VAR)
        if env_path:
            return Path(expand_home(env_path, env))

        return Path(home_dir(env)) / DEFAULT_MEMORY_DIR / DEFAULT_MEMORY_FILE

    def describe_source(self) -> str:
        """Name the precedence level that :meth:`resolve` used."""
        if self.override is not None:
            return "--memory flag"
        env = os.environ if self.environ is None else self.environ
        if env.get(MEMORY_ENV_VAR):
            return f"${MEMORY_ENV_VAR}"
        return "default"


def ensure_parent_dir(path: Path) -> None:
    """Create every missing ancestor directory of ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider.

    Supports two backends plus an off switch:
    - "fastembed": Local ONNX-based embeddings (default, no API key needed)
    - "openai": OpenAI API embeddings (requires OPENAI_API_KEY)
    - "none": embeddings disabled; saves and searches stay lexical

    Environment variables:
    - MEMVID_EMBED_PROVIDER: override provider
    - MEMVID_EMBED_MODEL: override model
    - MEMVID_EMBED_BASE_URL: override base_url (OpenAI-compatible servers)
    - MEMVID_EMBED_DIMENSIONS: override dimensions
    """

    provider: str = "fastembed"
    model: str = "BAAI/bge-small-en-v1.5"
    dimensions: int | None = 384
    base_url: str | None = None
    api_key: str | None = None

    @property
    def enabled(self) -> bool:
        return self.provider != "none"

    @classmethod
    def from_dict(cls, data: dict) -> EmbeddingConfig:
        """Create EmbeddingConfig from a dict."""
        config = cls()
        if "provider" in data:
            config.provider = data["provider"]
        if "model" in data:
            config.model = data["model"]
        if "dimensions" in data:
            config.dimensions = data["dimensions"]
        if "base_url" in data:
            config.base_url = data["base_url"]
        if "api_key" in data:
            config.api_key = data["api_key"]
        return config

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EmbeddingConfig:
        """Create EmbeddingConfig from environment variables over defaults."""
        env = os.environ if environ is None else environ
        data: dict = {}
        provider = env.get("MEMVID_EMBED_PROVIDER", "").strip().lower()
        if provider:
            data["provider"] = provider
        model = env.get("MEMVID_EMBED_MODEL")
        if model:
            data["model"] = model
            # A custom model has its own width unless told otherwise
            data["dimensions"] = None
        base_url = env.get("MEMVID_EMBED_BASE_URL")
        if base_url:
            data["base_url"] = base_url
        dimensions = env.get("MEMVID_EMBED_DIMENSIONS")
        if dimensions and dimensions.isdigit():
            data["dimensions"] = int(dimensions)
        return cls.from_dict(data)

    def resolve_api_key(self) -> str | None:
        """Resolve the API key: explicit > env var."""
        if self.api_key:
            return self.api_key
        return os.environ.get("OPENAI_API_KEY")
