"""Exception hierarchy for the ingestion and retrieval pipeline.

Per-item problems (an unreadable PDF, a document that fails to chunk) are
never raised; they are recorded in an
:class:`~pdf_rag.ingestion.models.IngestionReport`.  The exceptions below
are the *fatal* outcomes that abort a run.
"""

from __future__ import annotations

from typing import Any


class PdfRagError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PdfRagError):
    """Missing or inconsistent configuration (credentials, chunk sizes, …)."""


class DimensionMismatchError(ConfigurationError):
    """Vector length does not match the index's declared dimensionality."""

    def __init__(self, index_name: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Dimension mismatch for index {index_name!r}: expected {expected}, got {actual}",
            {"index": index_name, "expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class EmbeddingError(PdfRagError):
    """The embedding provider failed after all retry attempts."""


class EmbeddingAlignmentError(EmbeddingError):
    """The provider returned a different number of vectors than requested."""


class VectorStoreError(PdfRagError):
    """A vector-store call failed."""


class UpsertError(VectorStoreError):
    """A batch of records could not be written after all retry attempts."""


class PipelineCancelled(PdfRagError):
    """The run was cancelled cooperatively before all batches were issued."""
