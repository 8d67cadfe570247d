"""Core data models for memvid-cli."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SearchHit:
    """A single search result.

    Hits with the same ``frame_id`` coming from different search modes are
    the same logical result.
    """

    frame_id: int
    text: str
    title: str | None = None
    score: float | None = None


@dataclass
class SearchResponse:
    """Hits returned by one lexical or vector search."""

    hits: list[SearchHit] = field(default_factory=list)
    total_hits: int = 0
    elapsed_ms: int = 0


@dataclass
class PutOptions:
    """Optional metadata attached to a frame when it is written."""

    title: str | None = None
    uri: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    labels: list[str] = field(default_factory=list)
    embedding: list[float] | None = None


@dataclass
class FrameRecord:
    """One stored frame and its metadata."""

    frame_id: int
    status: str
    timestamp: int
    payload_length: int
    encoding: str
    title: str | None = None
    uri: str | None = None
    search_text: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    labels: list[str] = field(default_factory=list)
    role: str | None = None
    mime: str | None = None


@dataclass
class StoreStats:
    """Summary counters for a memory store."""

    frame_count: int = 0
    active_frame_count: int = 0
    size_bytes: int = 0
    has_lex_index: bool = False
    has_vec_index: bool = False
    compression_ratio_percent: float = 100.0


@dataclass
class RepairOptions:
    """What ``doctor`` should rebuild."""

    rebuild_vec_index: bool = False
    rebuild_lex_index: bool = False
    rebuild_time_index: bool = False
    dry_run: bool = False
    vacuum: bool = False


@dataclass
class Verification:
    """Result of the integrity checks run after a repair."""

    overall_status: str
    checks: dict[str, str] = field(default_factory=dict)


@dataclass
class RepairReport:
    """Outcome of a store repair."""

    status: str
    actions: list[str] = field(default_factory=list)
    verification: Verification | None = None
