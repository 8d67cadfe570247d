"""Maintenance commands — memvid doctor, memvid embed-all."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape

from memvid_cli.cli.main import console, err_console
from memvid_cli.cli.progress import EmbedProgress
from memvid_cli.cli.router import DoctorCommand, EmbedAllCommand
from memvid_cli.core.errors import EmbeddingUnavailableError
from memvid_cli.core.models import RepairOptions
from memvid_cli.search.backfill import EmbeddingBackfiller
from memvid_cli.store.sqlite import open_store

if TYPE_CHECKING:
    from memvid_cli.cli.main import CommandContext


def doctor(command: DoctorCommand, ctx: CommandContext) -> None:
    """Rebuild indexes and verify the memory file."""
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print(f"No memory file found at {escape(str(path))}", soft_wrap=True)
        return

    console.print(f"Running doctor on {escape(str(path))}...", soft_wrap=True)

    options = RepairOptions(
        rebuild_vec_index=command.rebuild_vec,
        rebuild_lex_index=command.rebuild_lex,
        rebuild_time_index=command.rebuild_time,
        dry_run=command.dry_run,
        vacuum=command.vacuum,
    )
    with open_store(path) as store:
        report = store.repair(options)

    console.print(f"Doctor completed: {report.status}")
    for action in report.actions:
        console.print(f"  [green]✓[/green] {escape(action)}")
    if report.verification is not None:
        style = "green" if report.verification.overall_status == "passed" else "red"
        console.print(
            f"  Verified: [{style}]{report.verification.overall_status}[/{style}]"
        )
        for name, result in report.verification.checks.items():
            if result != "ok":
                console.print(f"    [red]✗[/red] {escape(name)}: {escape(result)}")


def embed_all(command: EmbedAllCommand, ctx: CommandContext) -> None:
    """Generate embeddings for every frame that lacks one."""
    path = ctx.resolver.resolve()
    if not path.exists():
        console.print(f"No memory file found at {escape(str(path))}", soft_wrap=True)
        return

    if ctx.embedder_loader is None:
        raise EmbeddingUnavailableError(
            "embed-all needs an embedding provider; set MEMVID_EMBED_PROVIDER"
        )

    console.print("Loading embedding model...")
    embedder = ctx.embedder_loader()

    console.print("Opening memory file...")
    with open_store(path) as store:
        backfiller = EmbeddingBackfiller(
            store, embedder, reporter=EmbedProgress(console, err_console)
        )
        added = backfiller.run()

    run_stats = backfiller.stats
    if run_stats.pending == 0:
        console.print("All frames already have embeddings!")
    elif run_stats.submitted == 0:
        console.print("No embeddings generated.")
    else:
        console.print(
            f"[green]Done![/green] Added {added} embeddings in {run_stats.time_seconds:.1f}s"
        )
