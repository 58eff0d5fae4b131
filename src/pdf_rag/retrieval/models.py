"""Domain models for retrieval filters and results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

OPERATORS = ("eq", "ne", "gt", "gte", "lt", "lte", "in", "nin", "contains")


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Unlike a predicate function, a filter is plain data: it can be logged,
    serialised, and translated into a remote store's query language.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"filename"``, ``"source_id"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``, ``contains`` (substring match).
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @field_validator("operator")
    @classmethod
    def _known_operator(cls, value: str) -> str:
        if value not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {value!r}")
        return value

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    @classmethod
    def contains(cls, field: str, substring: str) -> MetadataFilter:
        return cls(field=field, operator="contains", value=substring)

    # -- evaluation -----------------------------------------------------------

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate the filter against a metadata dict, in process.

        A missing field never matches (not even for ``ne`` / ``nin``).
        """
        if self.field not in metadata:
            return False
        actual = metadata[self.field]
        op = self.operator
        try:
            if op == "eq":
                return actual == self.value
            if op == "ne":
                return actual != self.value
            if op == "gt":
                return actual > self.value
            if op == "gte":
                return actual >= self.value
            if op == "lt":
                return actual < self.value
            if op == "lte":
                return actual <= self.value
            if op == "in":
                return actual in self.value
            if op == "nin":
                return actual not in self.value
            return isinstance(actual, str) and str(self.value) in actual
        except TypeError:
            return False


def matches_all(filters: list[MetadataFilter] | None, metadata: dict[str, Any]) -> bool:
    """``True`` when *metadata* satisfies every filter (an empty list matches all)."""
    return all(f.matches(metadata) for f in filters or [])


def ingest_order(metadata: dict[str, Any]) -> int:
    """The record's ``ingest_order``, or 0 for records written without one."""
    order = metadata.get("ingest_order")
    return order if isinstance(order, int) and not isinstance(order, bool) else 0


def rank_key(hit: dict[str, Any]) -> tuple[float, int]:
    """Sort key for store hits: descending score, then earliest-ingested first.

    Stores apply it before cutting to *k* so that ``top-1`` is always the
    head of ``top-2``.
    """
    return (-(hit.get("score") or 0.0), ingest_order(hit.get("metadata") or {}))


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its source document.

    Attributes
    ----------
    record_id:
        The vector-store ID of the chunk (``None`` when unknown).
    source_id:
        Identifier of the source document (the PDF file name).
    sequence_index:
        Ordinal position of the chunk within the source document.
    char_offset:
        Character offset of the chunk within the source document.
    score:
        Similarity score returned by the vector store (higher = closer).
    metadata:
        Full metadata stored with the record.
    """

    record_id: str | None = None
    source_id: str = "unknown"
    sequence_index: int | None = None
    char_offset: int | None = None
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        seq = self.sequence_index if self.sequence_index is not None else "?"
        return f"[{self.source_id}§{seq}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    @property
    def score(self) -> float | None:
        return self.citation.score

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation.short_ref()} {self.content[:120]}…"
