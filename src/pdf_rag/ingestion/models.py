"""Domain models flowing through the ingestion pipeline.

``RawDocument`` → ``Chunk`` → ``EmbeddedChunk`` → ``IndexRecord``

Per-item outcomes are collected as :class:`ItemResult` entries in an
:class:`IngestionReport` instead of being raised.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class RawDocument(BaseModel):
    """Plain text extracted from one input file."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    text: str
    path: str | None = None


class Chunk(BaseModel):
    """A contiguous slice of a document's text with its position.

    Attributes
    ----------
    text:
        The chunk content.
    source_id:
        Identifier of the :class:`RawDocument` the chunk came from.
    sequence_index:
        Zero-based ordinal of the chunk within its document.
    char_offset:
        Character offset of ``text[0]`` in the source document.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    source_id: str
    sequence_index: int = Field(ge=0)
    char_offset: int = Field(ge=0)


class EmbeddedChunk(BaseModel):
    """A chunk paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    vector: list[float]
    chunk: Chunk

    @property
    def dimension(self) -> int:
        return len(self.vector)


class IndexRecord(BaseModel):
    """Persisted form of an embedded chunk."""

    id: str
    vector: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.metadata.get("content", "")


class ItemStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class ItemResult(BaseModel):
    """Outcome of processing one item (file or document) at one stage."""

    item: str
    stage: str
    status: ItemStatus
    reason: str = ""


class RunStatus(str, Enum):
    COMPLETED = "completed"
    EMPTY = "empty"
    CANCELLED = "cancelled"


class IngestionReport(BaseModel):
    """Summary of an ingestion run.

    ``record`` is thread-safe so extraction workers can report into the
    same instance.
    """

    status: RunStatus = RunStatus.COMPLETED
    items: list[ItemResult] = Field(default_factory=list)
    documents: int = 0
    chunks: int = 0
    embedded: int = 0
    upserted: int = 0

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def record(self, item: str, stage: str, status: ItemStatus, reason: str = "") -> ItemResult:
        result = ItemResult(item=item, stage=stage, status=status, reason=reason)
        with self._lock:
            self.items.append(result)
        return result

    def by_status(self, status: ItemStatus) -> list[ItemResult]:
        return [r for r in self.items if r.status == status]

    @property
    def skipped(self) -> list[ItemResult]:
        return self.by_status(ItemStatus.SKIPPED)

    @property
    def failed(self) -> list[ItemResult]:
        return self.by_status(ItemStatus.FAILED)

    def summary(self) -> str:
        return (
            f"{self.status.value}: {self.documents} documents, {self.chunks} chunks, "
            f"{self.upserted} records indexed ({len(self.skipped)} skipped, "
            f"{len(self.failed)} failed)"
        )
