"""Progress output for the embedding backfill."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from memvid_cli.search.backfill import BackfillProgress


class EmbedProgress:
    """Prints backfill events as they happen.

    Progress lines go to ``console``; per-frame failures go to
    ``err_console`` so they survive a redirected stdout.
    """

    def __init__(self, console: Console, err_console: Console) -> None:
        self.console = console
        self.err_console = err_console
        self.failures = 0

    def scan_start(self, total: int) -> None:
        self.console.print(f"Scanning {total} frames for missing embeddings...")

    def embed_start(self, pending: int) -> None:
        self.console.print(f"Generating embeddings for {pending} frames...")

    def embed_progress(self, progress: BackfillProgress) -> None:
        self.console.print(
            f"  Progress: [yellow]{progress.completed}/{progress.total}[/yellow] "
            f"[dim]({progress.rate_per_sec:.0f}/sec, "
            f"~{progress.eta_seconds:.0f}s remaining)[/dim]"
        )

    def embed_failed(self, frame_id: int, error: Exception) -> None:
        self.failures += 1
        self.err_console.print(
            f"  [yellow]Warning:[/yellow] Failed to embed frame {frame_id}: {escape(str(error))}"
        )

    def commit_start(self, count: int) -> None:
        self.console.print(f"Adding {count} embeddings to index...")
        self.console.print("Committing changes...")
