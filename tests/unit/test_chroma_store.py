"""Unit tests for the Chroma backend, against a mocked chromadb client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from pdf_rag.exceptions import VectorStoreError
from pdf_rag.ingestion.models import IndexRecord
from pdf_rag.retrieval.chroma_store import ChromaVectorStore, _build_chroma_where
from pdf_rag.retrieval.models import MetadataFilter


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def store(client: MagicMock) -> ChromaVectorStore:
    return ChromaVectorStore(client=client)


def _query_result(rows: list[tuple[str, str, dict, float]]) -> dict:
    return {
        "ids": [[r[0] for r in rows]],
        "documents": [[r[1] for r in rows]],
        "metadatas": [[r[2] for r in rows]],
        "distances": [[r[3] for r in rows]],
    }


# ── where-clause builder ──────────────────────────────────────────────


class TestBuildChromaWhere:
    def test_single_filter(self) -> None:
        assert _build_chroma_where([MetadataFilter.equals("source_id", "a.pdf")]) == {"source_id": {"$eq": "a.pdf"}}

    def test_multiple_filters_produce_and(self) -> None:
        where = _build_chroma_where(
            [
                MetadataFilter.equals("source_id", "a.pdf"),
                MetadataFilter(field="sequence_index", operator="gte", value=5),
            ]
        )
        assert where == {"$and": [{"source_id": {"$eq": "a.pdf"}}, {"sequence_index": {"$gte": 5}}]}

    def test_none_when_empty(self) -> None:
        assert _build_chroma_where([]) is None

    def test_contains_is_left_for_post_filtering(self) -> None:
        assert _build_chroma_where([MetadataFilter.contains("filename", "Berkshire")]) is None


# ── index management ─────────────────────────────────────────────────


class TestIndexManagement:
    def test_create_index_records_dimension(self, store: ChromaVectorStore, client: MagicMock) -> None:
        store.create_index("documents", 1536)
        client.get_or_create_collection.assert_called_once_with(
            name="documents",
            metadata={"hnsw:space": "cosine", "dimension": 1536},
        )

    def test_dimension_of_missing_collection(self, store: ChromaVectorStore, client: MagicMock) -> None:
        client.list_collections.return_value = ["other"]
        assert store.get_index_dimension("documents") is None

    def test_dimension_from_collection_metadata(self, store: ChromaVectorStore, client: MagicMock) -> None:
        collection = MagicMock()
        collection.name = "documents"
        collection.metadata = {"dimension": 1536, "hnsw:space": "cosine"}
        client.list_collections.return_value = [collection]
        client.get_collection.return_value = collection
        assert store.get_index_dimension("documents") == 1536

    def test_client_errors_become_vector_store_errors(self, store: ChromaVectorStore, client: MagicMock) -> None:
        client.get_or_create_collection.side_effect = ConnectionError("refused")
        with pytest.raises(VectorStoreError, match="refused"):
            store.create_index("documents", 8)

    def test_connection_failure_becomes_vector_store_error(self) -> None:
        with patch("chromadb.HttpClient", side_effect=ValueError("Could not connect to a Chroma server")):
            with pytest.raises(VectorStoreError, match="chroma.internal:8000"):
                ChromaVectorStore(host="chroma.internal", port=8000)


# ── upsert / query ───────────────────────────────────────────────────


class TestUpsertAndQuery:
    def test_upsert_splits_content_from_metadata(self, store: ChromaVectorStore, client: MagicMock) -> None:
        record = IndexRecord(
            id="r1",
            vector=[0.1, 0.2],
            metadata={"source_id": "a.pdf", "content": "hello", "sequence_index": 0, "tags": ["x"]},
        )
        store.upsert("documents", [record])
        client.get_collection.return_value.upsert.assert_called_once_with(
            ids=["r1"],
            embeddings=[[0.1, 0.2]],
            documents=["hello"],
            metadatas=[{"source_id": "a.pdf", "sequence_index": 0}],
        )

    def test_query_converts_distance_to_score(self, store: ChromaVectorStore, client: MagicMock) -> None:
        collection = client.get_collection.return_value
        collection.count.return_value = 10
        collection.query.return_value = _query_result([("r1", "hello", {"source_id": "a.pdf"}, 0.25)])

        hits = store.query("documents", [0.1, 0.2], k=3, filters=[MetadataFilter.equals("source_id", "a.pdf")])

        assert hits == [
            {"id": "r1", "content": "hello", "score": 0.75, "metadata": {"source_id": "a.pdf", "content": "hello"}}
        ]
        kwargs = collection.query.call_args.kwargs
        assert kwargs["n_results"] == 3
        assert kwargs["where"] == {"source_id": {"$eq": "a.pdf"}}

    def test_contains_filter_applied_after_over_fetch(self, store: ChromaVectorStore, client: MagicMock) -> None:
        collection = client.get_collection.return_value
        collection.count.return_value = 3
        collection.query.return_value = _query_result(
            [
                ("r1", "a", {"filename": "notes.pdf"}, 0.1),
                ("r2", "b", {"filename": "Berkshire-1988.pdf"}, 0.2),
                ("r3", "c", {"filename": "Berkshire-2008.pdf"}, 0.3),
            ]
        )

        hits = store.query("documents", [0.0], k=1, filters=[MetadataFilter.contains("filename", "Berkshire")])

        assert [h["id"] for h in hits] == ["r2"]
        assert collection.query.call_args.kwargs["n_results"] == 3
        assert collection.query.call_args.kwargs["where"] is None

    def test_empty_collection_returns_empty(self, store: ChromaVectorStore, client: MagicMock) -> None:
        client.get_collection.return_value.count.return_value = 0
        assert store.query("documents", [0.1], k=5) == []
        client.get_collection.return_value.query.assert_not_called()

    def test_delete_source_uses_where(self, store: ChromaVectorStore, client: MagicMock) -> None:
        store.delete_source("documents", "a.pdf")
        client.get_collection.return_value.delete.assert_called_once_with(where={"source_id": "a.pdf"})

    def test_health_check(self, store: ChromaVectorStore, client: MagicMock) -> None:
        assert store.health_check() is True
        client.heartbeat.side_effect = ConnectionError("down")
        assert store.health_check() is False

    def test_query_widens_until_ties_are_ranked(self, store: ChromaVectorStore, client: MagicMock) -> None:
        collection = client.get_collection.return_value
        collection.count.return_value = 4
        late = ("late", "same", {"source_id": "a.pdf", "ingest_order": 20}, 0.0)
        early = ("early", "same", {"source_id": "b.pdf", "ingest_order": 10}, 0.0)
        other = ("other", "else", {"source_id": "c.pdf", "ingest_order": 5}, 0.6)
        collection.query.side_effect = [
            _query_result([late]),
            _query_result([late, early]),
            _query_result([late, early, other]),
        ]

        hits = store.query("documents", [0.1], k=1)

        assert [h["id"] for h in hits] == ["early"]
        assert [c.kwargs["n_results"] for c in collection.query.call_args_list] == [1, 2, 4]

    def test_query_stops_widening_past_last_tie(self, store: ChromaVectorStore, client: MagicMock) -> None:
        collection = client.get_collection.return_value
        collection.count.return_value = 10
        collection.query.side_effect = [
            _query_result([("r1", "a", {"ingest_order": 2}, 0.1), ("r2", "b", {"ingest_order": 1}, 0.1)]),
            _query_result(
                [
                    ("r2", "b", {"ingest_order": 1}, 0.1),
                    ("r1", "a", {"ingest_order": 2}, 0.1),
                    ("r3", "c", {"ingest_order": 0}, 0.2),
                    ("r4", "d", {"ingest_order": 0}, 0.3),
                ]
            ),
        ]

        hits = store.query("documents", [0.1], k=2)

        assert [h["id"] for h in hits] == ["r2", "r1"]
        assert collection.query.call_count == 2
