"""
Retrieval — vector-store backends and the query-time retrieval contract.

Public surface
--------------
- :class:`SemanticRetriever` — top-k, metadata-filtered search with citations.
- :class:`VectorStoreBase` — abstract backend.
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`InMemoryVectorStore` — numpy backend for tests and local runs.
- :class:`Citation`, :class:`RetrievalResult`, :class:`MetadataFilter` — data models.
"""

from pdf_rag.retrieval.base import VectorStoreBase
from pdf_rag.retrieval.memory_store import InMemoryVectorStore
from pdf_rag.retrieval.models import Citation, MetadataFilter, RetrievalResult
from pdf_rag.retrieval.retriever import SemanticRetriever

__all__ = [
    "Citation",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "MetadataFilter",
    "RetrievalResult",
    "SemanticRetriever",
    "VectorStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from pdf_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
