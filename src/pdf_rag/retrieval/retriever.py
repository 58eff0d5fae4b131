"""Semantic retriever — metadata-filtered top-k search with citations.

This is the contract offered to the question-answering agent: a query
string and optional structured filters in, ranked passages out.

Usage::

    from pdf_rag.retrieval import SemanticRetriever

    retriever = SemanticRetriever(store, embedder, index_name="documents")
    results = retriever.query(
        "What does Buffett say about moats?",
        k=5,
        filters=[MetadataFilter.contains("filename", "Berkshire")],
    )
    for r in results:
        print(r.citation.short_ref(), r.content[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pdf_rag.retrieval.models import Citation, MetadataFilter, RetrievalResult, rank_key

if TYPE_CHECKING:
    from pdf_rag.ingestion.embedder import BatchEmbedder
    from pdf_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever over any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Used to embed query text (:meth:`BatchEmbedder.embed_query`).
    index_name:
        The index to search.
    default_k:
        Default number of results returned by :meth:`query`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: BatchEmbedder,
        *,
        index_name: str = "documents",
        default_k: int = 5,
        score_threshold: float | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.index_name = index_name
        self.default_k = default_k
        self.score_threshold = score_threshold

    # -- public API -----------------------------------------------------------

    def query(
        self,
        text: str,
        *,
        k: int | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalResult]:
        """Embed *text* and return the top-*k* matching passages.

        Returns fewer than *k* results when fewer records match, and an
        empty list when none do.
        """
        embedding = self._embedder.embed_query(text)
        results = self.query_by_embedding(embedding, k=k, filters=filters)
        logger.info("query returned %d results for %r (filters=%s)", len(results), text, filters)
        return results

    def query_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        filters: list[MetadataFilter] | None = None,
    ) -> list[RetrievalResult]:
        """Same as :meth:`query` but accepts a pre-computed embedding."""
        k = self.default_k if k is None else k
        if k <= 0:
            return []
        raw_hits = self._store.query(self.index_name, embedding, k=k, filters=filters)
        return self._to_results(sorted(raw_hits, key=rank_key)[:k])

    def health_check(self) -> bool:
        """``True`` if the backing vector store is reachable."""
        return self._store.health_check()

    # -- LangChain compat -----------------------------------------------------

    def as_langchain_retriever(
        self,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> Any:
        """Return a LangChain-compatible retriever bound to *k* and *filters*."""
        from langchain_core.documents import Document
        from langchain_core.retrievers import BaseRetriever

        outer = self

        class _LCRetriever(BaseRetriever):
            """Adapter that satisfies LangChain's retriever protocol."""

            def _get_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                results = outer.query(query, k=k, filters=filters)
                return [
                    Document(
                        page_content=r.content,
                        metadata={**r.citation.metadata, "_citation": r.citation.model_dump()},
                    )
                    for r in results
                ]

        return _LCRetriever()

    # -- internals ------------------------------------------------------------

    def _to_results(self, raw_hits: list[dict[str, Any]]) -> list[RetrievalResult]:
        results: list[RetrievalResult] = []
        for hit in raw_hits:
            score = hit.get("score")
            if self.score_threshold is not None and score is not None and score < self.score_threshold:
                continue

            meta = hit.get("metadata", {})
            citation = Citation(
                record_id=hit.get("id"),
                source_id=meta.get("source_id", "unknown"),
                sequence_index=meta.get("sequence_index"),
                char_offset=meta.get("char_offset"),
                score=score,
                metadata=meta,
            )
            results.append(RetrievalResult(content=hit.get("content", ""), citation=citation))
        return results
