"""Search commands — memvid search / memvid find."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape

from memvid_cli.cli.main import console
from memvid_cli.cli.router import SearchCommand
from memvid_cli.search.hybrid import hybrid_search
from memvid_cli.store.sqlite import open_store

if TYPE_CHECKING:
    from memvid_cli.cli.main import CommandContext


def search(command: SearchCommand, ctx: CommandContext) -> None:
    """Search the memory file, fusing lexical and vector results.

    Modes:
      hybrid  — lexical + vector via Reciprocal Rank Fusion, used when the
                file has a vector index and an embedder loads
      lexical — FTS5 full-text search, the fallback for everything else
    """
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print("No memory file found. Save something first with 'memvid save'")
        return

    with open_store(path) as store:
        outcome = hybrid_search(store, command.query, command.top_k, ctx.embedder_loader)

    if not outcome.hits:
        console.print(f"No results found for: {escape(command.query)}")
        return

    console.print(
        f"Found {len(outcome.hits)} results ({outcome.elapsed_ms} ms) "
        f"[dim]({outcome.mode} mode)[/dim]:\n"
    )
    for hit in outcome.hits:
        title = hit.title or "Untitled"
        score = hit.score if hit.score is not None else 0.0
        console.print(
            escape(f"--- [{hit.frame_id}] {title} (score: {score:.3f}) ---"),
            highlight=False,
            soft_wrap=True,
        )
        console.print(escape(hit.text.strip()) + "\n", highlight=False, soft_wrap=True)
