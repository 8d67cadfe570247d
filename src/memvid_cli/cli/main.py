"""memvid CLI — main entry point and shared utilities."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TextIO

import click
from rich.console import Console
from rich.markup import escape

from memvid_cli.cli.router import (
    Command,
    DoctorCommand,
    EmbedAllCommand,
    HelpCommand,
    InspectCommand,
    ListCommand,
    SaveCommand,
    SearchCommand,
    StatsCommand,
    UnknownCommand,
    parse_args,
)
from memvid_cli.core.config import EmbeddingConfig, PathResolver
from memvid_cli.core.errors import MemvidError, UsageError
from memvid_cli.core.logging import setup_logging, verbosity_from_env

if TYPE_CHECKING:
    from memvid_cli.search.embeddings import Embedder

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


@dataclass
class CommandContext:
    """Everything a command handler needs, passed explicitly.

    ``embedder_loader`` is None when embeddings are disabled.
    """

    resolver: PathResolver
    embedding_config: EmbeddingConfig
    embedder_loader: Callable[[], Embedder] | None
    stdin: TextIO


def _default_embedder_loader(config: EmbeddingConfig) -> Callable[[], Embedder] | None:
    if not config.enabled:
        return None

    def _load() -> Embedder:
        from memvid_cli.search.embeddings import load_embedder

        return load_embedder(config)

    return _load


def dispatch(command: Command, ctx: CommandContext) -> int:
    """Run one command and return the process exit code."""
    if isinstance(command, SaveCommand):
        save(command, ctx)
    elif isinstance(command, SearchCommand):
        search(command, ctx)
    elif isinstance(command, StatsCommand):
        stats(command, ctx)
    elif isinstance(command, InspectCommand):
        return inspect_frame(command, ctx)
    elif isinstance(command, ListCommand):
        list_frames(command, ctx)
    elif isinstance(command, DoctorCommand):
        doctor(command, ctx)
    elif isinstance(command, EmbedAllCommand):
        embed_all(command, ctx)
    elif isinstance(command, HelpCommand):
        print_usage(ctx)
        return 0 if command.explicit else 1
    elif isinstance(command, UnknownCommand):
        err_console.print(f"Unknown command: {escape(command.name)}")
        print_usage(ctx)
        return 1
    return 0


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
        "help_option_names": [],
    }
)
@click.argument("argv", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def main(ctx: click.Context, argv: tuple[str, ...]):
    """memvid — save to and search a local memory file."""
    setup_logging(verbosity_from_env())
    obj = ctx.obj or {}

    try:
        parsed = parse_args(argv)
    except UsageError as e:
        err_console.print(escape(str(e)))
        sys.exit(1)

    for ignored in parsed.ignored_overrides:
        logger.debug("Ignoring repeated --memory %s", ignored)

    embedding_config = obj.get("embedding_config") or EmbeddingConfig.from_env()
    if "embedder_loader" in obj:
        embedder_loader = obj["embedder_loader"]
    else:
        embedder_loader = _default_embedder_loader(embedding_config)

    command_ctx = CommandContext(
        resolver=PathResolver(parsed.memory_override),
        embedding_config=embedding_config,
        embedder_loader=embedder_loader,
        stdin=sys.stdin,
    )

    try:
        code = dispatch(parsed.command, command_ctx)
    except UsageError as e:
        err_console.print(escape(str(e)))
        sys.exit(1)
    except MemvidError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    if code:
        sys.exit(code)


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import command modules for dispatch
from memvid_cli.cli.frame_commands import inspect_frame, list_frames  # noqa: E402
from memvid_cli.cli.info_commands import print_usage, stats  # noqa: E402
from memvid_cli.cli.maintenance_commands import doctor, embed_all  # noqa: E402
from memvid_cli.cli.save_commands import save  # noqa: E402
from memvid_cli.cli.search_commands import search  # noqa: E402
