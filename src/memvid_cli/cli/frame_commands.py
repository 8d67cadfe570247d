"""Frame browsing commands — memvid list, memvid inspect."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from rich import box
from rich.markup import escape
from rich.table import Table

from memvid_cli.cli.main import console, err_console
from memvid_cli.cli.router import InspectCommand, ListCommand
from memvid_cli.core.errors import FrameNotFoundError, StoreError
from memvid_cli.store.sqlite import open_store

if TYPE_CHECKING:
    from memvid_cli.cli.main import CommandContext

TITLE_PREVIEW_CHARS = 40
TEXT_PREVIEW_CHARS = 100


def _mark(present: bool) -> str:
    return "[green]✓[/green]" if present else "[red]✗[/red]"


def list_frames(command: ListCommand, ctx: CommandContext) -> None:
    """List the most recent frames.

    A frame that fails to load gets an ERROR row; the listing continues.
    """
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print(f"No memory file found at {escape(str(path))}", soft_wrap=True)
        return

    with open_store(path) as store:
        total = store.stats().frame_count
        console.print(f"Total frames: {total}")
        console.print(f"Listing last {command.count} frames:")

        start = max(total - command.count, 0)
        if start >= total:
            return

        table = Table(box=box.ROUNDED, show_header=True)
        table.add_column("ID", justify="right", no_wrap=True)
        table.add_column("Search", justify="center")
        table.add_column("MIME", justify="center")
        table.add_column("Title", max_width=TITLE_PREVIEW_CHARS + 2)

        for frame_id in range(start, total):
            try:
                frame = store.frame_by_id(frame_id)
            except StoreError as e:
                table.add_row(str(frame_id), "-", "-", f"[red]ERROR:[/red] {escape(str(e))}")
                continue
            title = (frame.title or "(no title)")[:TITLE_PREVIEW_CHARS]
            table.add_row(
                str(frame_id),
                _mark(frame.search_text is not None),
                _mark(frame.mime is not None),
                escape(title),
            )

    console.print(table)


def inspect_frame(command: InspectCommand, ctx: CommandContext) -> int:
    """Show every stored field of one frame. Returns the exit code."""
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print(f"No memory file found at {escape(str(path))}", soft_wrap=True)
        return 0

    with open_store(path) as store:
        try:
            frame = store.frame_by_id(command.frame_id)
        except FrameNotFoundError as e:
            err_console.print(
                f"[red]Error getting frame {command.frame_id}:[/red] {escape(str(e))}"
            )
            return 1

    timestamp = datetime.fromtimestamp(frame.timestamp, tz=timezone.utc).isoformat()

    table = Table(
        title=f"Frame {frame.frame_id}",
        box=box.ROUNDED,
        show_header=False,
        padding=(0, 2),
    )
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Status", frame.status)
    table.add_row("Timestamp", f"{frame.timestamp} ({timestamp})")
    table.add_row("Title", escape(repr(frame.title)))
    table.add_row("URI", escape(repr(frame.uri)))
    table.add_row("Search text present", str(frame.search_text is not None).lower())
    if frame.search_text is not None:
        table.add_row(
            "Search text preview", escape(repr(frame.search_text[:TEXT_PREVIEW_CHARS]))
        )
    table.add_row("Tags", escape(repr(frame.tags)))
    table.add_row("Labels", escape(repr(frame.labels)))
    table.add_row("Role", escape(repr(frame.role)))
    table.add_row("MIME", escape(repr(frame.mime)))
    table.add_row("Payload length", str(frame.payload_length))
    table.add_row("Encoding", frame.encoding)

    console.print(table)
    return 0
