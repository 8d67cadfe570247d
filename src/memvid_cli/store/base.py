"""The memory store contract consumed by search, backfill and the CLI."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from memvid_cli.core.models import (
    FrameRecord,
    PutOptions,
    RepairOptions,
    RepairReport,
    SearchResponse,
    StoreStats,
)

DEFAULT_SNIPPET_CHARS = 300


@runtime_checkable
class StoreFacade(Protocol):
    """Operations a memory store must provide.

    Frame ids are assigned at write time, start at 0 and grow by one per
    ``put``. Writes are not durable until ``commit`` is called.
    """

    def put(self, content: bytes, options: PutOptions | None = None) -> int:
        """Append one frame and return its sequence number."""
        ...

    def commit(self) -> None:
        """Durably persist every write since the last commit."""
        ...

    def search(
        self, query: str, top_k: int, snippet_chars: int = DEFAULT_SNIPPET_CHARS
    ) -> SearchResponse:
        """Lexical search."""
        ...

    def vec_search(
        self,
        query: str,
        embedding: Sequence[float],
        top_k: int,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> SearchResponse:
        """Vector search. Raises VectorIndexError without a usable index."""
        ...

    def stats(self) -> StoreStats: ...

    def frame_by_id(self, frame_id: int) -> FrameRecord:
        """Raises FrameNotFoundError for ids outside the store."""
        ...

    def frame_text_by_id(self, frame_id: int) -> str: ...

    def frame_embedding(self, frame_id: int) -> list[float] | None: ...

    def add_embeddings(self, pairs: Sequence[tuple[int, Sequence[float]]]) -> int:
        """Attach embeddings to frames; returns how many were accepted."""
        ...

    def repair(self, options: RepairOptions) -> RepairReport: ...

    def close(self) -> None: ...
