"""memvid-cli error types."""

from __future__ import annotations


class MemvidError(Exception):
    """Base exception for memvid-cli."""

    pass


class UsageError(MemvidError):
    """Bad command-line usage: missing values, empty content or query."""

    pass


class StoreError(MemvidError):
    """Error raised by the memory store."""

    pass


class InvalidStoreError(StoreError):
    """The path exists but does not hold a memory store."""

    pass


class FrameNotFoundError(StoreError):
    """A frame id is outside the store's range."""

    def __init__(self, frame_id: int):
        self.frame_id = frame_id
        super().__init__(f"frame {frame_id} not found")


class VectorIndexError(StoreError):
    """Vector search was requested but cannot be served."""

    pass


class EmbeddingError(MemvidError):
    """The embedding provider failed for a piece of text."""

    pass


class EmbeddingUnavailableError(EmbeddingError):
    """No embedding provider can be loaded."""

    pass
