"""Embedding backfill — compute and store embeddings for frames that lack them."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from memvid_cli.search.embeddings import Embedder
from memvid_cli.store.base import StoreFacade

logger = logging.getLogger(__name__)

DEFAULT_REPORT_INTERVAL = 50


@dataclass(frozen=True)
class EmbeddingTask:
    """A frame waiting for an embedding."""

    frame_id: int
    text: str


@dataclass(frozen=True)
class BackfillProgress:
    """A progress snapshot, measured from the start of the embed phase."""

    completed: int
    total: int
    elapsed_seconds: float
    rate_per_sec: float
    eta_seconds: float


@dataclass
class BackfillStats:
    """Per-run counters, kept for reporting and tests."""

    scanned: int = 0
    already_embedded: int = 0
    skipped_empty: int = 0
    pending: int = 0
    failed_ids: list[int] = field(default_factory=list)
    submitted: int = 0
    added: int = 0
    time_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "already_embedded": self.already_embedded,
            "skipped_empty": self.skipped_empty,
            "pending": self.pending,
            "failed_ids": list(self.failed_ids),
            "submitted": self.submitted,
            "added": self.added,
            "time_seconds": self.time_seconds,
        }


class BackfillReporter(Protocol):
    """Receives backfill events. Every method is optional to act on."""

    def scan_start(self, total: int) -> None: ...

    def embed_start(self, pending: int) -> None: ...

    def embed_progress(self, progress: BackfillProgress) -> None: ...

    def embed_failed(self, frame_id: int, error: Exception) -> None: ...

    def commit_start(self, count: int) -> None: ...


class _NullReporter:
    def scan_start(self, total: int) -> None:
        pass

    def embed_start(self, pending: int) -> None:
        pass

    def embed_progress(self, progress: BackfillProgress) -> None:
        pass

    def embed_failed(self, frame_id: int, error: Exception) -> None:
        pass

    def commit_start(self, count: int) -> None:
        pass


class EmbeddingBackfiller:
    """Fills in missing embeddings for every frame in a store.

    The run has three phases:

    1. Scan frames ``0..frame_count-1`` and queue those with text but no
       embedding.
    2. Embed each queued frame. A provider error skips that frame only; it
       stays pending for the next run.
    3. Write every embedding in one ``add_embeddings`` call, then commit
       once. Store errors here propagate: if the commit fails, nothing from
       this run is saved.
    """

    def __init__(
        self,
        store: StoreFacade,
        embedder: Embedder,
        report_interval: int = DEFAULT_REPORT_INTERVAL,
        reporter: BackfillReporter | None = None,
    ):
        if report_interval <= 0:
            raise ValueError(f"report_interval must be positive, got {report_interval}")
        self.store = store
        self.embedder = embedder
        self.report_interval = report_interval
        self.reporter = reporter or _NullReporter()
        self.stats = BackfillStats()

    def scan(self) -> list[EmbeddingTask]:
        """Collect frames that have text but no embedding, in id order."""
        total = self.store.stats().frame_count
        self.reporter.scan_start(total)

        tasks: list[EmbeddingTask] = []
        for frame_id in range(total):
            self.stats.scanned += 1
            try:
                has_embedding = self.store.frame_embedding(frame_id) is not None
            except Exception as e:
                # Unreadable embedding counts as missing; the text check decides
                logger.debug("Could not read embedding for frame %d: %s", frame_id, e)
                has_embedding = False
            if has_embedding:
                self.stats.already_embedded += 1
                continue

            try:
                text = self.store.frame_text_by_id(frame_id)
            except Exception as e:
                logger.warning("Skipping frame %d: could not read text: %s", frame_id, e)
                self.stats.skipped_empty += 1
                continue
            if not text or not text.strip():
                self.stats.skipped_empty += 1
                continue

            tasks.append(EmbeddingTask(frame_id, text))

        self.stats.pending = len(tasks)
        return tasks

    def embed(self, tasks: list[EmbeddingTask]) -> list[tuple[int, list[float]]]:
        """Embed every task, skipping the ones the provider fails on."""
        self.reporter.embed_start(len(tasks))
        start = time.monotonic()
        batch: list[tuple[int, list[float]]] = []

        for i, task in enumerate(tasks, start=1):
            try:
                batch.append((task.frame_id, self.embedder.embed(task.text)))
            except Exception as e:
                logger.warning("Failed to embed frame %d: %s", task.frame_id, e)
                self.stats.failed_ids.append(task.frame_id)
                self.reporter.embed_failed(task.frame_id, e)

            if i % self.report_interval == 0 or i == len(tasks):
                self.reporter.embed_progress(_progress(i, len(tasks), time.monotonic() - start))

        return batch

    def run(self) -> int:
        """Run scan, embed and write. Returns the number of embeddings added."""
        start = time.monotonic()
        try:
            tasks = self.scan()
            if not tasks:
                return 0

            batch = self.embed(tasks)
            if not batch:
                return 0

            self.reporter.commit_start(len(batch))
            self.stats.submitted = len(batch)
            added = self.store.add_embeddings(batch)
            self.store.commit()
            self.stats.added = added
            logger.info("Added %d embeddings (%d submitted)", added, len(batch))
            return added
        finally:
            self.stats.time_seconds = time.monotonic() - start


def _progress(completed: int, total: int, elapsed: float) -> BackfillProgress:
    rate = completed / elapsed if elapsed > 0 else float(completed)
    remaining = total - completed
    eta = remaining / rate if rate > 0 else 0.0
    return BackfillProgress(
        completed=completed,
        total=total,
        elapsed_seconds=elapsed,
        rate_per_sec=rate,
        eta_seconds=eta,
    )


def backfill(
    store: StoreFacade,
    embedder: Embedder,
    report_interval: int = DEFAULT_REPORT_INTERVAL,
    reporter: BackfillReporter | None = None,
) -> int:
    """Convenience wrapper around :class:`EmbeddingBackfiller`."""
    return EmbeddingBackfiller(store, embedder, report_interval, reporter).run()
