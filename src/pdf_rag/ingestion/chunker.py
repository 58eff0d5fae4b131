"""Text chunking strategies.

The unit of every size and offset in this module is the **character**
(a Python ``str`` code point).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pdf_rag.ingestion.models import Chunk, IngestionReport, ItemStatus, RawDocument

logger = logging.getLogger(__name__)

STAGE = "chunk"
STRATEGIES = ("fixed", "recursive")


class TextChunker:
    """Split documents into overlapping, bounded-size chunks.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of characters shared by consecutive chunks.
    strategy:
        ``"fixed"`` places chunk *i* at offset ``i * (chunk_size - chunk_overlap)``
        so that the chunks tile the text with no gaps.  ``"recursive"``
        delegates to LangChain's ``RecursiveCharacterTextSplitter``, which
        prefers paragraph / sentence boundaries and only guarantees the
        size bound.
    """

    def __init__(
        self,
        chunk_size: int = 512,
        chunk_overlap: int = 50,
        *,
        strategy: str = "fixed",
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown chunking strategy: {strategy!r}")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.strategy = strategy

    @property
    def stride(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def chunk(self, document: RawDocument) -> list[Chunk]:
        """Split one document; raises on failure."""
        if self.strategy == "recursive":
            return self._chunk_recursive(document)
        return self._chunk_fixed(document)

    def chunk_documents(
        self,
        documents: Iterable[RawDocument],
        report: IngestionReport | None = None,
    ) -> list[Chunk]:
        """Chunk every document, skipping (and reporting) the ones that fail."""
        report = report if report is not None else IngestionReport()
        chunks: list[Chunk] = []
        for doc in documents:
            try:
                doc_chunks = self.chunk(doc)
            except Exception as exc:
                logger.warning("Failed to chunk %s: %s", doc.source_id, exc)
                report.record(doc.source_id, STAGE, ItemStatus.FAILED, f"chunking error: {exc}")
                continue
            logger.debug("Chunked %s into %d chunks", doc.source_id, len(doc_chunks))
            report.record(doc.source_id, STAGE, ItemStatus.OK)
            chunks.extend(doc_chunks)
        return chunks

    # -- strategies -----------------------------------------------------------

    def _chunk_fixed(self, document: RawDocument) -> list[Chunk]:
        text = document.text
        chunks: list[Chunk] = []
        start = 0
        while start < len(text):
            chunks.append(
                Chunk(
                    text=text[start : start + self.chunk_size],
                    source_id=document.source_id,
                    sequence_index=len(chunks),
                    char_offset=start,
                )
            )
            if start + self.chunk_size >= len(text):
                break
            start += self.stride
        return chunks

    def _chunk_recursive(self, document: RawDocument) -> list[Chunk]:
        from langchain_text_splitters import RecursiveCharacterTextSplitter

        splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            length_function=len,
            separators=["\n\n", "\n", ". ", " ", ""],
            add_start_index=True,
        )
        pieces = splitter.create_documents([document.text])
        return [
            Chunk(
                text=piece.page_content,
                source_id=document.source_id,
                sequence_index=idx,
                char_offset=max(piece.metadata.get("start_index", 0), 0),
            )
            for idx, piece in enumerate(pieces)
        ]


def reconstruct(chunks: list[Chunk], chunk_overlap: int) -> str:
    """Rebuild the source text from fixed-strategy chunks of one document."""
    if not chunks:
        return ""
    parts = [chunks[0].text]
    parts.extend(c.text[chunk_overlap:] for c in chunks[1:])
    return "".join(parts)
