"""memvid-cli - save to and search a local memory file from the command line.

Usage:
    memvid save --title "Standup" --tag team=core "Shipped the new importer"
    memvid search importer --top 3
    memvid embed-all
"""

from memvid_cli.core.models import SearchHit
from memvid_cli.search.backfill import EmbeddingBackfiller, backfill
from memvid_cli.search.fusion import rrf_fuse
from memvid_cli.search.hybrid import SearchOutcome, hybrid_search

__all__ = [
    "EmbeddingBackfiller",
    "SearchHit",
    "SearchOutcome",
    "backfill",
    "hybrid_search",
    "rrf_fuse",
]
