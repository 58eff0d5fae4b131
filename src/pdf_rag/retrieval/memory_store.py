"""In-memory vector store, for tests and small local runs."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import numpy as np

from pdf_rag.exceptions import VectorStoreError
from pdf_rag.retrieval.base import VectorStoreBase
from pdf_rag.retrieval.models import MetadataFilter, ingest_order, matches_all

if TYPE_CHECKING:
    from pdf_rag.ingestion.models import IndexRecord


class _Index:
    def __init__(self, dimension: int) -> None:
        self.dimension = dimension
        self.records: dict[str, IndexRecord] = {}


class InMemoryVectorStore(VectorStoreBase):
    """Brute-force cosine similarity over records held in a dict."""

    def __init__(self) -> None:
        self._indexes: dict[str, _Index] = {}
        self._lock = threading.Lock()

    def create_index(self, name: str, dimension: int) -> None:
        with self._lock:
            self._indexes.setdefault(name, _Index(dimension))

    def get_index_dimension(self, name: str) -> int | None:
        index = self._indexes.get(name)
        return index.dimension if index is not None else None

    def upsert(self, name: str, records: list[IndexRecord]) -> None:
        index = self._get(name)
        for record in records:
            if len(record.vector) != index.dimension:
                raise VectorStoreError(
                    f"Record {record.id} has dimension {len(record.vector)}, "
                    f"index {name!r} expects {index.dimension}"
                )
        with self._lock:
            for record in records:
                index.records[record.id] = record

    def query(
        self,
        name: str,
        vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        index = self._get(name)
        with self._lock:
            candidates = [r for r in index.records.values() if matches_all(filters, r.metadata)]
        if not candidates or k <= 0:
            return []

        query_vec = np.asarray(vector, dtype=float)
        matrix = np.asarray([r.vector for r in candidates], dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
        dots = matrix @ query_vec
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        # last key is primary: descending score, then earliest ingest_order
        ingested = np.asarray([ingest_order(r.metadata) for r in candidates], dtype=np.int64)
        order = np.lexsort((ingested, -scores))[:k]
        return [
            {
                "id": candidates[i].id,
                "content": candidates[i].content,
                "score": float(scores[i]),
                "metadata": dict(candidates[i].metadata),
            }
            for i in order
        ]

    def health_check(self) -> bool:
        return True

    def delete_source(self, name: str, source_id: str) -> None:
        index = self._get(name)
        with self._lock:
            for record_id in [rid for rid, r in index.records.items() if r.metadata.get("source_id") == source_id]:
                del index.records[record_id]

    def count(self, name: str) -> int:
        return len(self._get(name).records)

    def _get(self, name: str) -> _Index:
        index = self._indexes.get(name)
        if index is None:
            raise VectorStoreError(f"Index {name!r} does not exist")
        return index
