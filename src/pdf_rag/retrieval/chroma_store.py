"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pdf_rag.exceptions import VectorStoreError
from pdf_rag.retrieval.base import VectorStoreBase
from pdf_rag.retrieval.models import MetadataFilter, matches_all, rank_key

if TYPE_CHECKING:
    from pdf_rag.ingestion.models import IndexRecord

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert the server-side subset of *filters* to Chroma ``where`` syntax.

    ``contains`` has no Chroma metadata equivalent and is skipped here;
    :meth:`ChromaVectorStore.query` applies it to the returned hits.
    """
    clauses: list[dict[str, Any]] = []
    for f in filters:
        if f.operator == "contains":
            continue
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _may_hide_ties(distances: list[float], k: int, n_results: int, total: int) -> bool:
    """``True`` when a hit tied with the *k*-th may not have been fetched yet."""
    if n_results >= total or len(distances) < n_results or len(distances) < k:
        return False
    return distances[-1] <= distances[k - 1]


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    # Chroma metadata values must be flat str/int/float/bool
    return {
        k: v
        for k, v in metadata.items()
        if k != "content" and isinstance(v, (str, int, float, bool))
    }


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Each index is a Chroma collection using cosine distance.  The declared
    dimensionality is kept in the collection metadata under ``"dimension"``
    since Chroma itself only fixes it on first insert.

    Parameters
    ----------
    host / port:
        Chroma server address, used when *client* is not given.
    client:
        A pre-built ``chromadb`` client (HTTP, persistent or ephemeral).
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any | None = None,
    ) -> None:
        if client is None:
            import chromadb

            try:
                client = chromadb.HttpClient(host=host, port=port)
            except Exception as exc:
                raise VectorStoreError(f"Could not connect to Chroma at {host}:{port}: {exc}") from exc
        self._client = client

    # -- VectorStoreBase overrides --------------------------------------------

    def create_index(self, name: str, dimension: int) -> None:
        try:
            self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine", "dimension": dimension},
            )
        except Exception as exc:
            raise VectorStoreError(f"Could not create collection {name!r}: {exc}") from exc

    def get_index_dimension(self, name: str) -> int | None:
        try:
            existing = [c if isinstance(c, str) else c.name for c in self._client.list_collections()]
            if name not in existing:
                return None
            metadata = self._client.get_collection(name).metadata or {}
        except Exception as exc:
            raise VectorStoreError(f"Could not describe collection {name!r}: {exc}") from exc
        dimension = metadata.get("dimension")
        return int(dimension) if dimension is not None else None

    def upsert(self, name: str, records: list[IndexRecord]) -> None:
        if not records:
            return
        try:
            self._client.get_collection(name).upsert(
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                documents=[r.content for r in records],
                metadatas=[_flatten_metadata(r.metadata) for r in records],
            )
        except Exception as exc:
            raise VectorStoreError(f"Upsert into {name!r} failed: {exc}") from exc

    def query(
        self,
        name: str,
        vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        filters = filters or []
        post_filters = [f for f in filters if f.operator == "contains"]
        where = _build_chroma_where(filters)
        try:
            collection = self._client.get_collection(name)
            total = collection.count()
            if total == 0 or k <= 0:
                return []
            # substring filters are applied locally, so fetch every candidate
            n_results = total if post_filters else min(k, total)
            while True:
                results = collection.query(
                    query_embeddings=[vector],
                    n_results=n_results,
                    where=where,
                    include=["documents", "metadatas", "distances"],
                )
                distances = (results.get("distances") or [[]])[0]
                if not _may_hide_ties(distances, k, n_results, total):
                    break
                # hits tied with the k-th one may lie past the fetched window
                n_results = min(total, n_results * 2)
        except Exception as exc:
            raise VectorStoreError(f"Query against {name!r} failed: {exc}") from exc

        hits: list[dict[str, Any]] = []
        ids = results.get("ids", [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            meta = dict(meta or {})
            if not matches_all(post_filters, meta):
                continue
            meta["content"] = content or ""
            hits.append(
                {
                    "id": doc_id,
                    "content": content or "",
                    # cosine distance → cosine similarity
                    "score": 1.0 - dist,
                    "metadata": meta,
                }
            )
        hits.sort(key=rank_key)
        return hits[:k]

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete_source(self, name: str, source_id: str) -> None:
        try:
            self._client.get_collection(name).delete(where={"source_id": source_id})
        except Exception as exc:
            raise VectorStoreError(f"Delete of {source_id!r} from {name!r} failed: {exc}") from exc

    def count(self, name: str) -> int:
        return self._client.get_collection(name).count()
