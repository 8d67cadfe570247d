"""Hybrid retrieval — lexical search, fused with vector search when available."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from memvid_cli.core.models import SearchHit
from memvid_cli.search.embeddings import Embedder
from memvid_cli.search.fusion import rrf_fuse
from memvid_cli.store.base import DEFAULT_SNIPPET_CHARS, StoreFacade

logger = logging.getLogger(__name__)

# Each mode fetches this many times top_k so fusion has enough to work with
OVERFETCH = 2


@dataclass
class SearchOutcome:
    """Hits plus the mode that actually produced them.

    ``mode`` is "hybrid" when lexical and vector results were fused and
    "lexical" otherwise; ``degraded_reason`` says why the vector path was
    not used.
    """

    hits: list[SearchHit] = field(default_factory=list)
    mode: str = "lexical"
    degraded_reason: str | None = None
    elapsed_ms: int = 0
    total_hits: int = 0


def hybrid_search(
    store: StoreFacade,
    query: str,
    top_k: int,
    embedder_loader: Callable[[], Embedder] | None = None,
) -> SearchOutcome:
    """Search the store, fusing vector results in when the store has them.

    The vector path is optional: any failure loading the embedder, embedding
    the query, or running the vector search falls back to lexical results.
    """
    fetch = top_k * OVERFETCH
    lexical = store.search(query, fetch, DEFAULT_SNIPPET_CHARS)

    def _lexical_only(reason: str) -> SearchOutcome:
        return SearchOutcome(
            hits=lexical.hits[:top_k],
            mode="lexical",
            degraded_reason=reason,
            elapsed_ms=lexical.elapsed_ms,
            total_hits=lexical.total_hits,
        )

    if embedder_loader is None:
        return _lexical_only("no embedding provider configured")
    if not store.stats().has_vec_index:
        return _lexical_only("memory file has no vector index")

    try:
        embedder = embedder_loader()
        query_embedding = embedder.embed(query)
        vector = store.vec_search(query, query_embedding, fetch, DEFAULT_SNIPPET_CHARS)
    except Exception as e:
        logger.warning("Vector search unavailable, using lexical results only: %s", e)
        return _lexical_only(str(e))

    return SearchOutcome(
        hits=rrf_fuse(lexical.hits, vector.hits, top_k),
        mode="hybrid",
        elapsed_ms=lexical.elapsed_ms + vector.elapsed_ms,
        total_hits=lexical.total_hits,
    )
