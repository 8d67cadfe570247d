"""Save command — memvid save."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape

from memvid_cli.cli.main import console, err_console
from memvid_cli.cli.router import SaveCommand
from memvid_cli.core.config import ensure_parent_dir
from memvid_cli.core.models import PutOptions
from memvid_cli.store.sqlite import open_or_create

if TYPE_CHECKING:
    from memvid_cli.cli.main import CommandContext


def _embed_content(content: str, ctx: CommandContext) -> list[float] | None:
    """Embed the content if possible; warn and return None otherwise."""
    if ctx.embedder_loader is None:
        return None
    try:
        embedder = ctx.embedder_loader()
    except Exception as e:
        err_console.print(
            f"[yellow]Warning:[/yellow] Could not load embedder ({escape(str(e))}), saving without"
        )
        return None
    try:
        return embedder.embed(content)
    except Exception as e:
        err_console.print(
            f"[yellow]Warning:[/yellow] Could not generate embedding ({escape(str(e))}), "
            "saving without"
        )
        return None


def save(command: SaveCommand, ctx: CommandContext) -> None:
    """Append one frame, with an embedding when a provider is available."""
    content = command.resolve_content(ctx.stdin)

    path = ctx.resolver.resolve()
    ensure_parent_dir(path)

    options = PutOptions(title=command.title, tags=dict(command.tags))
    options.embedding = _embed_content(content, ctx)

    with open_or_create(path) as store:
        frame_id = store.put(content.encode("utf-8"), options)
        store.commit()

    console.print(f"Saved to memory (frame {frame_id})")
