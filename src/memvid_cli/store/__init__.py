"""Memory store contract and the local SQLite implementation."""

from memvid_cli.store.base import StoreFacade
from memvid_cli.store.sqlite import MemoryStore, open_or_create, open_store

__all__ = [
    "MemoryStore",
    "StoreFacade",
    "open_or_create",
    "open_store",
]
