"""Reciprocal Rank Fusion of lexical and vector result lists."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from memvid_cli.core.models import SearchHit

# RRF constant (k): controls how much rank position matters.
# Typical values are 10-60; 60 is the standard from the RRF paper.
RRF_K = 60


def rrf_fuse(
    lexical_hits: Sequence[SearchHit],
    vector_hits: Sequence[SearchHit],
    top_k: int,
    k: int = RRF_K,
) -> list[SearchHit]:
    """Fuse lexical and vector results using Reciprocal Rank Fusion.

    RRF score = sum(1 / (k + rank)) across result lists, with 1-based ranks.
    Lexical and vector scores live on different scales; rank position does
    not, so the lists merge without calibration.

    Each frame id appears once in the output. Its title and text come from
    the first list it was seen in (lexical is scanned first). Results are
    sorted by fused score, descending; equal scores keep first-seen order.
    The returned hits carry the fused score in place of their own.
    """
    if top_k <= 0:
        return []

    # dicts keep insertion order, so first-seen order is the tie-break
    scores: dict[int, float] = {}
    hits_by_id: dict[int, SearchHit] = {}

    for hits in (lexical_hits, vector_hits):
        for rank, hit in enumerate(hits, start=1):
            scores[hit.frame_id] = scores.get(hit.frame_id, 0.0) + 1.0 / (k + rank)
            hits_by_id.setdefault(hit.frame_id, hit)

    # sorted() is stable, so ties stay in first-seen order
    ranked = sorted(scores, key=lambda fid: scores[fid], reverse=True)

    return [replace(hits_by_id[fid], score=scores[fid]) for fid in ranked[:top_k]]
