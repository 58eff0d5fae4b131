"""
Ingestion — PDF extraction, chunking, embedding and indexing.

This package is the offline half of the system: it turns a directory of
PDF files into embedded chunks stored in a vector index.
"""

from pdf_rag.ingestion.cancellation import CancellationToken
from pdf_rag.ingestion.chunker import TextChunker
from pdf_rag.ingestion.embedder import BatchEmbedder
from pdf_rag.ingestion.indexer import Indexer, ReingestPolicy, record_id
from pdf_rag.ingestion.loader import DocumentExtractor
from pdf_rag.ingestion.models import (
    Chunk,
    EmbeddedChunk,
    IndexRecord,
    IngestionReport,
    ItemResult,
    ItemStatus,
    RawDocument,
    RunStatus,
)
from pdf_rag.ingestion.pipeline import IngestionPipeline

__all__ = [
    "BatchEmbedder",
    "CancellationToken",
    "Chunk",
    "DocumentExtractor",
    "EmbeddedChunk",
    "IndexRecord",
    "Indexer",
    "IngestionPipeline",
    "IngestionReport",
    "ItemResult",
    "ItemStatus",
    "RawDocument",
    "ReingestPolicy",
    "RunStatus",
    "TextChunker",
    "record_id",
]
