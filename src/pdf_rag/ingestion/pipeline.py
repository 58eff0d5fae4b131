"""End-to-end ingestion: extract → chunk → embed → index.

:class:`IngestionPipeline` only wires stages together; every stage is
injected so tests can substitute fakes for the embedding model and the
vector store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pdf_rag.exceptions import DimensionMismatchError, PipelineCancelled
from pdf_rag.ingestion.cancellation import CancellationToken
from pdf_rag.ingestion.models import IngestionReport, RunStatus

if TYPE_CHECKING:
    from pdf_rag.ingestion.chunker import TextChunker
    from pdf_rag.ingestion.embedder import BatchEmbedder
    from pdf_rag.ingestion.indexer import Indexer
    from pdf_rag.ingestion.loader import DocumentExtractor

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Offline ingestion path.

    Parameters
    ----------
    extractor / chunker / embedder / indexer:
        The four pipeline stages.
    index_name:
        Target index.
    dimension:
        Declared dimensionality of the index; produced vectors must match.
    """

    def __init__(
        self,
        extractor: DocumentExtractor,
        chunker: TextChunker,
        embedder: BatchEmbedder,
        indexer: Indexer,
        *,
        index_name: str,
        dimension: int,
    ) -> None:
        self.extractor = extractor
        self.chunker = chunker
        self.embedder = embedder
        self.indexer = indexer
        self.index_name = index_name
        self.dimension = dimension

    def run(
        self,
        directory: str | Path,
        cancel: CancellationToken | None = None,
    ) -> IngestionReport:
        """Ingest every supported file in *directory*.

        Returns a report whose ``status`` is ``empty`` when nothing usable
        was found (no embedding or index calls are made in that case) and
        ``cancelled`` when *cancel* fired between batches.  Fatal problems
        raise.
        """
        cancel = cancel or CancellationToken()
        report = IngestionReport()

        try:
            documents = self.extractor.extract_many(directory, report)
            report.documents = len(documents)
            if not documents:
                logger.warning("No documents with extractable text found in %s", directory)
                report.status = RunStatus.EMPTY
                return report
            logger.info("Extracted %d documents", len(documents))

            cancel.raise_if_cancelled("chunking")
            chunks = self.chunker.chunk_documents(documents, report)
            report.chunks = len(chunks)
            if not chunks:
                logger.warning("No chunks were produced; nothing to index")
                report.status = RunStatus.EMPTY
                return report
            logger.info("Chunked into %d segments", len(chunks))

            cancel.raise_if_cancelled("embedding")
            embedded = self.embedder.embed_chunks(chunks, cancel=cancel)
            report.embedded = len(embedded)
            produced = embedded[0].dimension
            if produced != self.dimension:
                raise DimensionMismatchError(self.index_name, self.dimension, produced)

            cancel.raise_if_cancelled("indexing")
            self.indexer.ensure_index(self.index_name, self.dimension)
            report.upserted = self.indexer.upsert(self.index_name, embedded, cancel=cancel)
        except PipelineCancelled as exc:
            logger.warning("%s", exc.message)
            report.status = RunStatus.CANCELLED
            return report

        logger.info("Ingestion %s", report.summary())
        return report
