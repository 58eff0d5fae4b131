"""Abstract base class for vector-store backends.

The pipeline treats the vector engine as a capability: create a named
index of fixed dimensionality, upsert records into it, and run a filtered
similarity search.  Adding a backend (pgvector, Qdrant …) only requires
subclassing :class:`VectorStoreBase`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pdf_rag.ingestion.models import IndexRecord
    from pdf_rag.retrieval.models import MetadataFilter


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Implementations raise :class:`~pdf_rag.exceptions.VectorStoreError`
    for transport / server failures so callers can retry them.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create_index(self, name: str, dimension: int) -> None:
        """Create index *name* if it does not exist (get-or-create semantics).

        If the index already exists it is left untouched, whatever its
        dimensionality; callers compare via :meth:`get_index_dimension`.
        """
        ...

    @abstractmethod
    def get_index_dimension(self, name: str) -> int | None:
        """Return the declared dimensionality of *name*, or ``None`` if absent."""
        ...

    @abstractmethod
    def upsert(self, name: str, records: list[IndexRecord]) -> None:
        """Insert or overwrite *records* (keyed by ``record.id``)."""
        ...

    @abstractmethod
    def query(
        self,
        name: str,
        vector: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
    ) -> list[dict[str, Any]]:
        """Return up to *k* records most similar to *vector*.

        Each result dict **must** contain:

        * ``"id"`` – record identifier
        * ``"content"`` – the chunk text
        * ``"score"`` – similarity score (higher = more similar)
        * ``"metadata"`` – associated metadata dict

        Only records satisfying every filter are considered.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def delete_source(self, name: str, source_id: str) -> None:
        """Delete every record of *source_id*.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete_source")

    def count(self, name: str) -> int:
        """Number of records in *name*.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support count")
