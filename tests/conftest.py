"""Shared test fixtures for memvid-cli."""

from __future__ import annotations

import pytest

from memvid_cli.core.errors import EmbeddingError
from memvid_cli.store.sqlite import MemoryStore


class FakeEmbedder:
    """Deterministic embedder returning a letter-frequency vector per text.

    Texts containing any marker in ``fail_on`` raise EmbeddingError, which
    lets tests simulate a provider failing on one record.
    """

    def __init__(self, fail_on: tuple[str, ...] = (), dim: int = 8):
        self.fail_on = fail_on
        self.dim = dim
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingError(f"cannot embed text containing {marker!r}")
        vector = [0.0] * self.dim
        for ch in text.lower():
            if ch.isalpha():
                vector[ord(ch) % self.dim] += 1.0
        return vector


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real home directory and embedding models."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("MEMVID_MEMORY", raising=False)
    monkeypatch.setenv("MEMVID_EMBED_PROVIDER", "none")
    for var in ("MEMVID_EMBED_MODEL", "MEMVID_EMBED_BASE_URL", "MEMVID_EMBED_DIMENSIONS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def memory_path(tmp_path):
    """Path for a memory file that does not exist yet, in a missing directory."""
    return tmp_path / "memories" / "test.mv2"


@pytest.fixture
def store(tmp_path):
    """A fresh, empty MemoryStore."""
    s = MemoryStore.create(tmp_path / "store.mv2")
    yield s
    s.close()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def make_embedder():
    """Factory for FakeEmbedder instances with custom failure markers or size."""
    return FakeEmbedder
