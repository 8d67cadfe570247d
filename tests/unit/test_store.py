"""Tests for the SQLite memory store."""

from __future__ import annotations

import struct
from unittest.mock import MagicMock

import pytest

from memvid_cli.core.errors import (
    FrameNotFoundError,
    InvalidStoreError,
    StoreError,
    VectorIndexError,
)
from memvid_cli.core.models import PutOptions, RepairOptions
from memvid_cli.store import MemoryStore, StoreFacade, open_or_create, open_store


def _text_of(store, frame_id):
    return store.frame_text_by_id(frame_id)


class TestLifecycle:
    def test_implements_facade(self, store):
        assert isinstance(store, StoreFacade)

    def test_open_or_create_creates_missing(self, tmp_path):
        path = tmp_path / "new.mv2"
        with open_or_create(path) as s:
            assert s.stats().frame_count == 0
        assert path.exists()

    def test_open_missing_raises(self, tmp_path):
        with pytest.raises(StoreError):
            open_store(tmp_path / "nope.mv2")

    def test_open_garbage_file(self, tmp_path):
        path = tmp_path / "garbage.mv2"
        path.write_bytes(b"this is not a memory file at all " * 64)
        with pytest.raises(InvalidStoreError):
            open_store(path)

    def test_open_foreign_sqlite_file(self, tmp_path):
        import sqlite3

        path = tmp_path / "other.db"
        conn = sqlite3.connect(str(path))
        conn.execute("CREATE TABLE meta (key TEXT, value TEXT)")
        conn.execute("INSERT INTO meta VALUES ('format', 'something-else')")
        conn.commit()
        conn.close()
        with pytest.raises(InvalidStoreError):
            open_store(path)

    def test_invalid_store_is_store_error(self):
        assert issubclass(InvalidStoreError, StoreError)

    def test_committed_frames_persist(self, tmp_path):
        path = tmp_path / "m.mv2"
        with open_or_create(path) as s:
            s.put(b"kept")
            s.commit()
        with open_store(path) as s:
            assert s.stats().frame_count == 1
            assert _text_of(s, 0) == "kept"

    def test_uncommitted_frames_discarded(self, tmp_path):
        path = tmp_path / "m.mv2"
        with open_or_create(path) as s:
            s.put(b"kept")
            s.commit()
            s.put(b"lost")
        with open_store(path) as s:
            assert s.stats().frame_count == 1


class TestPut:
    def test_ids_are_sequential(self, store):
        assert [store.put(f"frame {i}".encode()) for i in range(3)] == [0, 1, 2]

    def test_metadata_round_trips(self, store):
        frame_id = store.put(
            b"body",
            PutOptions(title="Note", uri="mv2://x", tags={"project": "alpha"}, labels=["a"]),
        )
        frame = store.frame_by_id(frame_id)
        assert frame.title == "Note"
        assert frame.uri == "mv2://x"
        assert frame.tags == {"project": "alpha"}
        assert frame.labels == ["a"]
        assert frame.status == "active"
        assert frame.mime == "text/plain"
        assert frame.payload_length == 4
        assert frame.search_text == "body"

    def test_large_payload_compressed(self, store):
        content = ("the same line again\n" * 200).encode()
        frame_id = store.put(content)
        assert store.frame_by_id(frame_id).encoding == "zlib"
        assert store.frame_text_by_id(frame_id) == content.decode()
        assert store.stats().compression_ratio_percent < 100.0

    def test_small_payload_plain(self, store):
        frame_id = store.put(b"tiny")
        assert store.frame_by_id(frame_id).encoding == "plain"

    def test_binary_payload(self, store):
        frame_id = store.put(b"\xff\xfe\x00binary")
        frame = store.frame_by_id(frame_id)
        assert frame.mime == "application/octet-stream"
        assert frame.search_text is None

    def test_put_with_embedding(self, store):
        frame_id = store.put(b"vec", PutOptions(embedding=[1.0, 0.0, 0.0]))
        assert store.frame_embedding(frame_id) == pytest.approx([1.0, 0.0, 0.0])
        assert store.stats().has_vec_index


class TestReads:
    def test_frame_not_found(self, store):
        store.put(b"only")
        with pytest.raises(FrameNotFoundError, match="frame 5 not found"):
            store.frame_by_id(5)

    @pytest.mark.parametrize("method", ["frame_by_id", "frame_text_by_id", "frame_embedding"])
    def test_out_of_range_ids(self, store, method):
        with pytest.raises(FrameNotFoundError):
            getattr(store, method)(2**64)

    def test_frame_embedding_absent(self, store):
        frame_id = store.put(b"no vector")
        assert store.frame_embedding(frame_id) is None

    def test_stats_empty(self, store):
        stats = store.stats()
        assert stats.frame_count == 0
        assert stats.active_frame_count == 0
        assert stats.has_lex_index
        assert not stats.has_vec_index
        assert stats.size_bytes > 0


class TestLexicalSearch:
    def test_finds_matching_frame(self, store):
        store.put(b"hello world")
        store.put(b"something else")
        response = store.search("hello", top_k=5)
        assert [h.frame_id for h in response.hits] == [0]
        assert response.total_hits == 1
        assert response.hits[0].text == "hello world"

    def test_matches_title(self, store):
        store.put(b"body text", PutOptions(title="Quarterly planning"))
        assert [h.frame_id for h in store.search("quarterly", top_k=5).hits] == [0]

    def test_no_match(self, store):
        store.put(b"hello world")
        response = store.search("absent", top_k=5)
        assert response.hits == []
        assert response.total_hits == 0

    def test_punctuation_is_not_query_syntax(self, store):
        store.put(b"hello world")
        response = store.search('"hello" AND (world', top_k=5)
        assert [h.frame_id for h in response.hits] == [0]

    def test_query_without_terms(self, store):
        store.put(b"hello world")
        assert store.search("?!", top_k=5).hits == []

    def test_respects_top_k(self, store):
        for i in range(5):
            store.put(f"common word {i}".encode())
        response = store.search("common", top_k=2)
        assert len(response.hits) == 2
        assert response.total_hits == 5

    def test_better_match_scores_higher(self, store):
        store.put(b"apple banana cherry date elderberry fig grape")
        store.put(b"apple apple apple")
        hits = store.search("apple", top_k=5).hits
        assert hits[0].frame_id == 1
        assert hits[0].score >= hits[1].score

    def test_long_text_snippet(self, store):
        store.put(("filler " * 100 + "needle " + "filler " * 100).encode())
        hit = store.search("needle", top_k=1, snippet_chars=80).hits[0]
        assert "needle" in hit.text
        assert len(hit.text) <= 80 + 6


class TestEmbeddings:
    def test_add_embeddings_counts_accepted(self, store):
        store.put(b"a")
        store.put(b"b")
        assert store.add_embeddings([(0, [1.0, 0.0]), (1, [0.0, 1.0])]) == 2

    def test_rejects_missing_frame(self, store):
        store.put(b"a")
        assert store.add_embeddings([(7, [1.0, 0.0])]) == 0

    def test_rejects_empty_vector(self, store):
        store.put(b"a")
        assert store.add_embeddings([(0, [])]) == 0

    def test_rejects_dimension_mismatch(self, store):
        store.put(b"a")
        store.put(b"b")
        assert store.add_embeddings([(0, [1.0, 0.0]), (1, [1.0, 0.0, 0.0])]) == 1
        assert store.frame_embedding(1) is None

    def test_replaces_existing(self, store):
        store.put(b"a")
        store.add_embeddings([(0, [1.0, 0.0])])
        store.add_embeddings([(0, [0.0, 1.0])])
        assert store.frame_embedding(0) == pytest.approx([0.0, 1.0])


class TestVectorSearch:
    def test_no_index(self, store):
        store.put(b"a")
        with pytest.raises(VectorIndexError):
            store.vec_search("a", [1.0, 0.0], top_k=5)

    def test_dimension_mismatch(self, store):
        store.put(b"a", PutOptions(embedding=[1.0, 0.0]))
        with pytest.raises(VectorIndexError, match="dimension"):
            store.vec_search("a", [1.0, 0.0, 0.0], top_k=5)

    def test_ranks_by_similarity(self, store):
        store.put(b"east", PutOptions(embedding=[1.0, 0.0]))
        store.put(b"north", PutOptions(embedding=[0.0, 1.0]))
        store.put(b"northeast", PutOptions(embedding=[0.7, 0.7]))
        response = store.vec_search("north", [0.1, 1.0], top_k=2)
        assert [h.frame_id for h in response.hits] == [1, 2]
        assert response.hits[0].score == pytest.approx(1.0, abs=0.01)
        assert response.total_hits == 3


class TestRepair:
    def test_healthy_without_options(self, store):
        store.put(b"hello")
        store.commit()
        report = store.repair(RepairOptions())
        assert report.status == "healthy"
        assert report.actions == []
        assert report.verification.overall_status == "passed"

    def test_rebuild_lexical_index(self, store):
        store.put(b"hello world")
        store.commit()
        store._conn.execute("DELETE FROM frames_fts")
        store.commit()
        assert store.search("hello", top_k=5).hits == []

        report = store.repair(RepairOptions(rebuild_lex_index=True))
        assert report.status == "repaired"
        assert report.verification.overall_status == "passed"
        assert [h.frame_id for h in store.search("hello", top_k=5).hits] == [0]

    def test_dry_run_changes_nothing(self, store):
        store.put(b"hello world")
        store.commit()
        store._conn.execute("DELETE FROM frames_fts")
        store.commit()

        report = store.repair(RepairOptions(rebuild_lex_index=True, dry_run=True))
        assert report.status == "dry_run"
        assert report.actions[0].startswith("would rebuild lexical index")
        assert report.verification.overall_status == "failed"
        assert store.search("hello", top_k=5).hits == []

    def test_rebuild_vector_index_drops_invalid(self, store):
        store.put(b"a", PutOptions(embedding=[1.0, 0.0]))
        store.put(b"b", PutOptions(embedding=[0.0, 1.0]))
        store.put(b"c")
        store._conn.execute(
            "INSERT INTO frame_vectors (frame_id, dimension, vector) VALUES (?, ?, ?)",
            (2, 3, struct.pack("<3f", 1.0, 1.0, 1.0)),
        )
        store.commit()
        assert store.repair(RepairOptions()).verification.overall_status == "failed"

        report = store.repair(RepairOptions(rebuild_vec_index=True))
        assert "1 dropped" in report.actions[0]
        assert report.verification.overall_status == "passed"
        assert store.frame_embedding(2) is None
        assert store.frame_embedding(0) == pytest.approx([1.0, 0.0])

    def test_time_index_and_vacuum(self, store):
        store.put(b"a")
        store.commit()
        report = store.repair(RepairOptions(rebuild_time_index=True, vacuum=True))
        assert report.status == "repaired"
        assert report.actions == ["rebuilt time index", "vacuumed"]
        assert report.verification.checks["integrity"] == "ok"


class TestCorruption:
    def test_corrupt_tags_raise_store_error(self, store):
        store.put(b"first")
        store.put(b"second")
        store._conn.execute("UPDATE frames SET tags = '{broken' WHERE id = 0")
        with pytest.raises(StoreError, match="frame 0 has corrupt metadata"):
            store.frame_by_id(0)
        assert store.frame_by_id(1).tags == {}

    def test_corrupt_labels_raise_store_error(self, store):
        store.put(b"only")
        store._conn.execute("UPDATE frames SET labels = '[1,' WHERE id = 0")
        with pytest.raises(StoreError):
            store.frame_by_id(0)

    def test_failed_open_closes_connection(self, tmp_path, monkeypatch):
        import sqlite3

        path = tmp_path / "bad.mv2"
        path.write_bytes(b"x")
        conn = MagicMock()
        conn.execute.side_effect = sqlite3.DatabaseError("file is not a database")
        monkeypatch.setattr(sqlite3, "connect", MagicMock(return_value=conn))

        with pytest.raises(InvalidStoreError):
            open_store(path)
        conn.close.assert_called_once()


class TestLimits:
    def test_search_with_oversized_top_k(self, store):
        store.put(b"hello world")
        response = store.search("hello", top_k=2**64 - 1)
        assert [h.frame_id for h in response.hits] == [0]
