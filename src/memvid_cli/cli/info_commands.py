"""Info commands — memvid stats, memvid help."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich import box
from rich.markup import escape
from rich.table import Table

from memvid_cli.cli.main import console, err_console
from memvid_cli.cli.router import StatsCommand
from memvid_cli.store.sqlite import open_store

if TYPE_CHECKING:
    from memvid_cli.cli.main import CommandContext

USAGE_LINES = [
    "Usage: memvid [--memory <path>] <command> [args]",
    "",
    "Commands:",
    "  save [--title <title>] [--tag key=value]... <content>",
    "  save --stdin [--title <title>] [--tag key=value]...",
    "  search <query> [--top <n>]",
    "  stats",
    "  list [count]                             List recent frames",
    "  inspect <frame_id>                       Show frame details",
    "  embed-all                                Generate embeddings for all frames",
    "  doctor [--rebuild-lex] [--rebuild-vec]   Rebuild indexes",
    "         [--rebuild-time] [--dry-run] [--vacuum]",
    "",
    "Memory path (in priority order):",
    "  1. --memory <path>      CLI flag",
    "  2. $MEMVID_MEMORY       Environment variable",
    "  3. ~/.memvid/claude.mv2 Default",
]


def print_usage(ctx: CommandContext) -> None:
    """Print usage and the active memory path to stderr."""
    for line in USAGE_LINES:
        err_console.print(escape(line), highlight=False)
    err_console.print()
    err_console.print(
        f"Active: {escape(str(ctx.resolver.resolve()))} "
        f"[dim]({escape(ctx.resolver.describe_source())})[/dim]",
        highlight=False,
        soft_wrap=True,
    )
    if ctx.embedder_loader is not None:
        err_console.print(
            f"Hybrid search (lex + semantic) enabled "
            f"[dim]({escape(ctx.embedding_config.provider)}: "
            f"{escape(ctx.embedding_config.model)})[/dim]."
        )


def stats(command: StatsCommand, ctx: CommandContext) -> None:
    """Show frame counts, size and index state of the memory file."""
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print(f"No memory file found at {escape(str(path))}", soft_wrap=True)
        return

    with open_store(path) as store:
        store_stats = store.stats()

    table = Table(title="Memory Statistics", box=box.ROUNDED, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Location", escape(str(path)))
    table.add_row("Frames", str(store_stats.frame_count))
    table.add_row("Active frames", str(store_stats.active_frame_count))
    table.add_row("Size", f"{store_stats.size_bytes} bytes")
    table.add_row("Has lex index", str(store_stats.has_lex_index).lower())
    table.add_row("Has vec index", str(store_stats.has_vec_index).lower())
    table.add_row("Compression", f"{store_stats.compression_ratio_percent:.1f}%")

    console.print(table)
