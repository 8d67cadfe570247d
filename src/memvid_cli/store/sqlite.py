"""Single-file SQLite memory store — FTS5 lexical index plus packed vectors."""

from __future__ import annotations

import json
import logging
import math
import re
import sqlite3
import struct
import time
import zlib
from collections.abc import Sequence
from pathlib import Path

from memvid_cli.core.errors import (
    FrameNotFoundError,
    InvalidStoreError,
    StoreError,
    VectorIndexError,
)
from memvid_cli.core.models import (
    FrameRecord,
    PutOptions,
    RepairOptions,
    RepairReport,
    SearchHit,
    SearchResponse,
    StoreStats,
    Verification,
)
from memvid_cli.store.base import DEFAULT_SNIPPET_CHARS

logger = logging.getLogger(__name__)

FORMAT_VERSION = "memvid-cli/1"

# Payloads shorter than this are stored as-is
_COMPRESS_MIN_BYTES = 64

_MAX_FRAME_ID = 2**63 - 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS frames (
    id INTEGER PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'active',
    timestamp INTEGER NOT NULL,
    title TEXT,
    uri TEXT,
    search_text TEXT,
    tags TEXT NOT NULL DEFAULT '{}',
    labels TEXT NOT NULL DEFAULT '[]',
    role TEXT,
    mime TEXT,
    payload BLOB NOT NULL,
    payload_length INTEGER NOT NULL,
    encoding TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS frame_vectors (
    frame_id INTEGER PRIMARY KEY,
    dimension INTEGER NOT NULL,
    vector BLOB NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_frames_timestamp ON frames (timestamp);
"""

_FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS frames_fts USING fts5(
    title,
    search_text
)
"""


def _cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Uses pure Python to avoid a hard dependency on numpy.
    """
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _pack_vector(vector: Sequence[float]) -> bytes:
    # Little-endian float32, same layout as the embedding cache files
    return struct.pack(f"<{len(vector)}f", *vector)


def _unpack_vector(data: bytes) -> list[float]:
    count = len(data) // 4
    return list(struct.unpack(f"<{count}f", data))


def _encode_payload(content: bytes) -> tuple[bytes, str]:
    """Compress the payload when that actually saves space."""
    if len(content) >= _COMPRESS_MIN_BYTES:
        compressed = zlib.compress(content)
        if len(compressed) < len(content):
            return compressed, "zlib"
    return content, "plain"


def _decode_payload(payload: bytes, encoding: str) -> bytes:
    if encoding == "zlib":
        return zlib.decompress(payload)
    return payload


def _check_frame_id(frame_id: int) -> None:
    # SQLite integers are signed 64-bit
    if frame_id < 0 or frame_id > _MAX_FRAME_ID:
        raise FrameNotFoundError(frame_id)


def _query_terms(query: str) -> list[str]:
    return re.findall(r"\w+", query)


def _fts_query(terms: list[str]) -> str:
    """Quote every term and OR them so punctuation never reaches FTS5 syntax."""
    return " OR ".join(f'"{t}"' for t in terms)


def _snippet(text: str, terms: list[str], max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` around the first matching term."""
    if len(text) <= max_chars:
        return text
    lower = text.lower()
    positions = [p for p in (lower.find(t.lower()) for t in terms) if p >= 0]
    start = max(0, min(positions) - max_chars // 4) if positions else 0
    end = min(len(text), start + max_chars)
    start = max(0, end - max_chars)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet


class MemoryStore:
    """SQLite-backed memory file.

    One connection per store, owned by the command that opened it. Writes
    sit in an open transaction until :meth:`commit`; reads on the same store
    see them immediately.
    """

    def __init__(self, path: Path, conn: sqlite3.Connection):
        self.path = path
        self._conn = conn

    # -- Lifecycle --

    @classmethod
    def create(cls, path: str | Path) -> MemoryStore:
        """Create a new, empty memory file at ``path``."""
        path = Path(path)
        try:
            conn = sqlite3.connect(str(path))
            conn.row_factory = sqlite3.Row
            conn.executescript(_SCHEMA)
            conn.execute(_FTS_SCHEMA)
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('format', ?)",
                (FORMAT_VERSION,),
            )
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('created_at', ?)",
                (str(int(time.time())),),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"could not create memory file at {path}: {e}") from e
        logger.info("Created memory store at %s", path)
        return cls(path, conn)

    @classmethod
    def open(cls, path: str | Path) -> MemoryStore:
        """Open an existing memory file.

        Raises InvalidStoreError if the file is not a memory store.
        """
        path = Path(path)
        if not path.exists():
            raise StoreError(f"no memory file at {path}")
        try:
            conn = sqlite3.connect(str(path))
        except sqlite3.Error as e:
            raise StoreError(f"could not open {path}: {e}") from e
        try:
            conn.row_factory = sqlite3.Row
            row = conn.execute("SELECT value FROM meta WHERE key = 'format'").fetchone()
        except sqlite3.DatabaseError as e:
            conn.close()
            raise InvalidStoreError(f"{path} is not a memory file: {e}") from e
        if row is None or not str(row["value"]).startswith("memvid-cli/"):
            conn.close()
            raise InvalidStoreError(f"{path} is not a memory file")
        logger.info("Opened memory store at %s", path)
        return cls(path, conn)

    def close(self) -> None:
        """Close the connection. Uncommitted writes are discarded."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def commit(self) -> None:
        try:
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"commit failed: {e}") from e
        logger.info("Committed memory store %s", self.path)

    # -- Writes --

    def put(self, content: bytes, options: PutOptions | None = None) -> int:
        """Append one frame and return its sequence number."""
        options = options or PutOptions()
        conn = self._conn

        frame_id = conn.execute("SELECT COALESCE(MAX(id) + 1, 0) FROM frames").fetchone()[0]
        try:
            search_text: str | None = content.decode("utf-8")
            mime = "text/plain"
        except UnicodeDecodeError:
            search_text = None
            mime = "application/octet-stream"

        payload, encoding = _encode_payload(content)
        conn.execute(
            "INSERT INTO frames (id, status, timestamp, title, uri, search_text, tags, "
            "labels, role, mime, payload, payload_length, encoding) "
            "VALUES (?, 'active', ?, ?, ?, ?, ?, ?, NULL, ?, ?, ?, ?)",
            (
                frame_id,
                int(time.time()),
                options.title,
                options.uri,
                search_text,
                json.dumps(options.tags),
                json.dumps(options.labels),
                mime,
                payload,
                len(content),
                encoding,
            ),
        )
        if search_text or options.title:
            conn.execute(
                "INSERT INTO frames_fts (rowid, title, search_text) VALUES (?, ?, ?)",
                (frame_id, options.title or "", search_text or ""),
            )

        if options.embedding:
            if self.add_embeddings([(frame_id, options.embedding)]) == 0:
                logger.warning("Embedding for frame %d was rejected; saved without it", frame_id)

        return frame_id

    def add_embeddings(self, pairs: Sequence[tuple[int, Sequence[float]]]) -> int:
        """Attach embeddings to existing frames.

        A pair is rejected when its frame does not exist, its vector is
        empty, or its dimension differs from the vectors already indexed.
        Returns the number of accepted pairs.
        """
        dimension = self._vector_dimension()
        accepted = 0
        for frame_id, vector in pairs:
            values = [float(x) for x in vector]
            if not values:
                logger.warning("Rejected empty embedding for frame %d", frame_id)
                continue
            if not self._frame_exists(frame_id):
                logger.warning("Rejected embedding for missing frame %d", frame_id)
                continue
            if dimension is None:
                dimension = len(values)
            elif len(values) != dimension:
                logger.warning(
                    "Rejected embedding for frame %d: dimension %d, index uses %d",
                    frame_id, len(values), dimension,
                )
                continue
            self._conn.execute(
                "INSERT OR REPLACE INTO frame_vectors (frame_id, dimension, vector) "
                "VALUES (?, ?, ?)",
                (frame_id, len(values), _pack_vector(values)),
            )
            accepted += 1
        return accepted

    # -- Reads --

    def _frame_exists(self, frame_id: int) -> bool:
        row = self._conn.execute("SELECT 1 FROM frames WHERE id = ?", (frame_id,)).fetchone()
        return row is not None

    def _vector_dimension(self) -> int | None:
        row = self._conn.execute("SELECT dimension FROM frame_vectors LIMIT 1").fetchone()
        return int(row["dimension"]) if row else None

    def _has_table(self, name: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM sqlite_master WHERE name = ?", (name,)
        ).fetchone()
        return row is not None

    def frame_by_id(self, frame_id: int) -> FrameRecord:
        """Load one frame's metadata.

        Raises FrameNotFoundError for unknown ids and StoreError when the row
        cannot be read or its tags/labels are not valid JSON.
        """
        _check_frame_id(frame_id)
        try:
            row = self._conn.execute(
                "SELECT id, status, timestamp, title, uri, search_text, tags, labels, role, "
                "mime, payload_length, encoding FROM frames WHERE id = ?",
                (frame_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"could not read frame {frame_id}: {e}") from e
        if row is None:
            raise FrameNotFoundError(frame_id)
        try:
            tags = json.loads(row["tags"]) if row["tags"] else {}
            labels = json.loads(row["labels"]) if row["labels"] else []
        except ValueError as e:
            raise StoreError(f"frame {frame_id} has corrupt metadata: {e}") from e
        return FrameRecord(
            frame_id=row["id"],
            status=row["status"],
            timestamp=row["timestamp"],
            payload_length=row["payload_length"],
            encoding=row["encoding"],
            title=row["title"],
            uri=row["uri"],
            search_text=row["search_text"],
            tags=tags,
            labels=labels,
            role=row["role"],
            mime=row["mime"],
        )

    def frame_text_by_id(self, frame_id: int) -> str:
        _check_frame_id(frame_id)
        row = self._conn.execute(
            "SELECT search_text, payload, encoding FROM frames WHERE id = ?", (frame_id,)
        ).fetchone()
        if row is None:
            raise FrameNotFoundError(frame_id)
        if row["search_text"] is not None:
            return row["search_text"]
        return _decode_payload(row["payload"], row["encoding"]).decode("utf-8", errors="replace")

    def frame_embedding(self, frame_id: int) -> list[float] | None:
        _check_frame_id(frame_id)
        if not self._frame_exists(frame_id):
            raise FrameNotFoundError(frame_id)
        row = self._conn.execute(
            "SELECT vector FROM frame_vectors WHERE frame_id = ?", (frame_id,)
        ).fetchone()
        return _unpack_vector(row["vector"]) if row else None

    def stats(self) -> StoreStats:
        conn = self._conn
        frame_count = conn.execute("SELECT COUNT(*) FROM frames").fetchone()[0]
        active = conn.execute(
            "SELECT COUNT(*) FROM frames WHERE status = 'active'"
        ).fetchone()[0]
        stored, raw = conn.execute(
            "SELECT COALESCE(SUM(LENGTH(payload)), 0), COALESCE(SUM(payload_length), 0) "
            "FROM frames"
        ).fetchone()
        has_vec = conn.execute("SELECT EXISTS (SELECT 1 FROM frame_vectors)").fetchone()[0]
        return StoreStats(
            frame_count=frame_count,
            active_frame_count=active,
            size_bytes=self.path.stat().st_size if self.path.exists() else 0,
            has_lex_index=self._has_table("frames_fts"),
            has_vec_index=bool(has_vec),
            compression_ratio_percent=(stored / raw * 100.0) if raw else 100.0,
        )

    # -- Search --

    def search(
        self, query: str, top_k: int, snippet_chars: int = DEFAULT_SNIPPET_CHARS
    ) -> SearchResponse:
        """Lexical search over titles and frame text, ranked by BM25."""
        start = time.perf_counter()
        terms = _query_terms(query)
        if not terms or top_k <= 0:
            return SearchResponse(elapsed_ms=int((time.perf_counter() - start) * 1000))

        match = _fts_query(terms)
        rows = self._conn.execute(
            "SELECT f.id, f.title, f.search_text, bm25(frames_fts) AS rank "
            "FROM frames_fts JOIN frames f ON f.id = frames_fts.rowid "
            "WHERE frames_fts MATCH ? AND f.status = 'active' "
            "ORDER BY rank LIMIT ?",
            (match, min(top_k, _MAX_FRAME_ID)),
        ).fetchall()
        total = self._conn.execute(
            "SELECT COUNT(*) FROM frames_fts WHERE frames_fts MATCH ?", (match,)
        ).fetchone()[0]

        hits = [
            SearchHit(
                frame_id=row["id"],
                title=row["title"],
                text=_snippet(row["search_text"] or "", terms, snippet_chars),
                score=-float(row["rank"]),
            )
            for row in rows
        ]
        return SearchResponse(
            hits=hits,
            total_hits=total,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )

    def vec_search(
        self,
        query: str,
        embedding: Sequence[float],
        top_k: int,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
    ) -> SearchResponse:
        """Rank frames by cosine similarity to ``embedding``."""
        start = time.perf_counter()
        dimension = self._vector_dimension()
        if dimension is None:
            raise VectorIndexError("memory file has no vector index")
        if len(embedding) != dimension:
            raise VectorIndexError(
                f"query embedding has dimension {len(embedding)}, index uses {dimension}"
            )

        rows = self._conn.execute(
            "SELECT f.id, f.title, f.search_text, v.vector "
            "FROM frame_vectors v JOIN frames f ON f.id = v.frame_id "
            "WHERE f.status = 'active' AND v.dimension = ?",
            (dimension,),
        ).fetchall()

        scored = [
            (_cosine_similarity(embedding, _unpack_vector(row["vector"])), row)
            for row in rows
        ]
        scored.sort(key=lambda x: x[0], reverse=True)

        terms = _query_terms(query)
        hits = [
            SearchHit(
                frame_id=row["id"],
                title=row["title"],
                text=_snippet(row["search_text"] or "", terms, snippet_chars),
                score=sim,
            )
            for sim, row in scored[: max(top_k, 0)]
        ]
        return SearchResponse(
            hits=hits,
            total_hits=len(scored),
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )

    # -- Maintenance --

    def repair(self, options: RepairOptions) -> RepairReport:
        """Rebuild the requested indexes and verify the file.

        With ``dry_run`` the planned actions are reported and nothing is
        written.
        """
        conn = self._conn
        actions: list[str] = []
        verb = "would rebuild" if options.dry_run else "rebuilt"

        if options.rebuild_lex_index:
            count = conn.execute(
                "SELECT COUNT(*) FROM frames WHERE search_text IS NOT NULL OR title IS NOT NULL"
            ).fetchone()[0]
            if not options.dry_run:
                conn.execute(_FTS_SCHEMA)
                conn.execute("DELETE FROM frames_fts")
                conn.execute(
                    "INSERT INTO frames_fts (rowid, title, search_text) "
                    "SELECT id, COALESCE(title, ''), COALESCE(search_text, '') FROM frames "
                    "WHERE search_text IS NOT NULL OR title IS NOT NULL"
                )
            actions.append(f"{verb} lexical index ({count} frames)")

        if options.rebuild_vec_index:
            dropped = self._invalid_vector_ids()
            kept = conn.execute("SELECT COUNT(*) FROM frame_vectors").fetchone()[0] - len(dropped)
            if not options.dry_run and dropped:
                conn.executemany(
                    "DELETE FROM frame_vectors WHERE frame_id = ?", [(i,) for i in dropped]
                )
            actions.append(f"{verb} vector index ({kept} vectors, {len(dropped)} dropped)")

        if options.rebuild_time_index:
            if not options.dry_run:
                conn.execute("DROP INDEX IF EXISTS idx_frames_timestamp")
                conn.execute("CREATE INDEX idx_frames_timestamp ON frames (timestamp)")
            actions.append(f"{verb} time index")

        if options.dry_run:
            status = "dry_run"
        else:
            self.commit()
            if options.vacuum:
                conn.execute("VACUUM")
                actions.append("vacuumed")
            status = "repaired" if actions else "healthy"

        return RepairReport(status=status, actions=actions, verification=self._verify())

    def _invalid_vector_ids(self) -> list[int]:
        """Vectors that are orphaned, truncated, or off the dominant dimension."""
        conn = self._conn
        dominant = conn.execute(
            "SELECT dimension FROM frame_vectors GROUP BY dimension "
            "ORDER BY COUNT(*) DESC, MIN(frame_id) LIMIT 1"
        ).fetchone()
        rows = conn.execute(
            "SELECT v.frame_id, v.dimension, LENGTH(v.vector) AS size, f.id AS present "
            "FROM frame_vectors v LEFT JOIN frames f ON f.id = v.frame_id"
        ).fetchall()
        invalid = []
        for row in rows:
            if (
                row["present"] is None
                or row["size"] != row["dimension"] * 4
                or row["dimension"] != dominant["dimension"]
            ):
                invalid.append(row["frame_id"])
        return invalid

    def _verify(self) -> Verification:
        conn = self._conn
        checks: dict[str, str] = {}

        integrity = conn.execute("PRAGMA integrity_check").fetchone()[0]
        checks["integrity"] = "ok" if integrity == "ok" else str(integrity)

        if self._has_table("frames_fts"):
            indexed = conn.execute("SELECT COUNT(*) FROM frames_fts").fetchone()[0]
            expected = conn.execute(
                "SELECT COUNT(*) FROM frames WHERE search_text IS NOT NULL OR title IS NOT NULL"
            ).fetchone()[0]
            checks["lexical_index"] = (
                "ok" if indexed == expected else f"{indexed} indexed, {expected} expected"
            )
        else:
            checks["lexical_index"] = "missing"

        invalid = self._invalid_vector_ids()
        checks["vector_index"] = "ok" if not invalid else f"{len(invalid)} invalid vectors"

        overall = "passed" if all(v == "ok" for v in checks.values()) else "failed"
        return Verification(overall_status=overall, checks=checks)


def open_store(path: str | Path) -> MemoryStore:
    """Open an existing memory file."""
    return MemoryStore.open(path)


def open_or_create(path: str | Path) -> MemoryStore:
    """Open the memory file at ``path``, creating it when missing."""
    path = Path(path)
    if path.exists():
        return MemoryStore.open(path)
    return MemoryStore.create(path)
