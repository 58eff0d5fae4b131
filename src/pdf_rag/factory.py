"""Build pipeline components from :class:`~pdf_rag.config.Settings`.

These helpers are the only place where configuration turns into live
clients; everything else receives its collaborators as arguments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pdf_rag.ingestion.chunker import TextChunker
from pdf_rag.ingestion.embedder import BatchEmbedder
from pdf_rag.ingestion.indexer import Indexer, ReingestPolicy
from pdf_rag.ingestion.loader import DocumentExtractor
from pdf_rag.ingestion.pipeline import IngestionPipeline
from pdf_rag.retrieval.retriever import SemanticRetriever

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from pdf_rag.config import Settings
    from pdf_rag.retrieval.base import VectorStoreBase


def build_store(settings: Settings) -> VectorStoreBase:
    """Connect to the configured Chroma server."""
    from pdf_rag.retrieval.chroma_store import ChromaVectorStore

    return ChromaVectorStore(host=settings.chroma_host, port=settings.chroma_port)


def build_pipeline(
    settings: Settings,
    *,
    store: VectorStoreBase | None = None,
    model: Embeddings | None = None,
    policy: ReingestPolicy = ReingestPolicy.DEDUPLICATE,
) -> IngestionPipeline:
    """Assemble an :class:`IngestionPipeline`; *store* / *model* override the defaults."""
    settings.require_ingestion_config()
    return IngestionPipeline(
        extractor=DocumentExtractor(max_workers=settings.extract_workers),
        chunker=TextChunker(
            settings.chunk_size,
            settings.chunk_overlap,
            strategy=settings.chunk_strategy,
        ),
        embedder=BatchEmbedder.from_settings(settings, model),
        indexer=Indexer(
            store if store is not None else build_store(settings),
            upsert_batch_size=settings.upsert_batch_size,
            timeout=settings.request_timeout,
            policy=policy,
        ),
        index_name=settings.index_name,
        dimension=settings.embedding_dimension,
    )


def build_retriever(
    settings: Settings,
    *,
    store: VectorStoreBase | None = None,
    model: Embeddings | None = None,
) -> SemanticRetriever:
    """Assemble a :class:`SemanticRetriever` for the configured index."""
    settings.require_ingestion_config()
    return SemanticRetriever(
        store if store is not None else build_store(settings),
        BatchEmbedder.from_settings(settings, model),
        index_name=settings.index_name,
        default_k=settings.top_k,
    )
