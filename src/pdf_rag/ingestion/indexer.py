"""Index management — create the target collection and upsert embedded chunks.

Record IDs are derived from ``source_id`` + ``sequence_index``, so writing
the same document twice overwrites rather than duplicates, and a failed
batch can simply be retried.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pdf_rag.exceptions import DimensionMismatchError, UpsertError, VectorStoreError
from pdf_rag.ingestion.models import EmbeddedChunk, IndexRecord

if TYPE_CHECKING:
    from pdf_rag.ingestion.cancellation import CancellationToken
    from pdf_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReingestPolicy(str, Enum):
    """What happens to existing records when a document is ingested again."""

    DEDUPLICATE = "deduplicate"
    """Overwrite records with the same ``(source_id, sequence_index)``."""

    REPLACE = "replace"
    """Delete every record of the source first, then write the new ones."""


def record_id(source_id: str, sequence_index: int) -> str:
    """Stable record ID for chunk *sequence_index* of *source_id*."""
    return hashlib.sha256(f"{source_id}:{sequence_index}".encode()).hexdigest()[:32]


def to_record(embedded: EmbeddedChunk, ingest_order: int = 0) -> IndexRecord:
    chunk = embedded.chunk
    return IndexRecord(
        id=record_id(chunk.source_id, chunk.sequence_index),
        vector=embedded.vector,
        metadata={
            "source_id": chunk.source_id,
            "filename": chunk.source_id,
            "sequence_index": chunk.sequence_index,
            "char_offset": chunk.char_offset,
            "content": chunk.text,
            "ingest_order": ingest_order,
        },
    )


class Indexer:
    """Drive a :class:`VectorStoreBase` for ingestion.

    Parameters
    ----------
    store:
        Target vector store.
    upsert_batch_size:
        Maximum records per store call.
    max_attempts:
        Attempts per store call before the failure is escalated.
    timeout:
        Seconds to wait for one store call; a timed-out call counts as a
        failed attempt.
    policy:
        Re-ingestion policy, see :class:`ReingestPolicy`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        upsert_batch_size: int = 500,
        max_attempts: int = 3,
        timeout: float | None = 60.0,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
        policy: ReingestPolicy = ReingestPolicy.DEDUPLICATE,
    ) -> None:
        if upsert_batch_size <= 0:
            raise ValueError(f"upsert_batch_size must be positive, got {upsert_batch_size}")
        self.store = store
        self.upsert_batch_size = upsert_batch_size
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.policy = ReingestPolicy(policy)

    # -- public API -----------------------------------------------------------

    def ensure_index(self, name: str, dimension: int) -> None:
        """Create index *name* if absent; no-op if it exists with *dimension*.

        Raises
        ------
        DimensionMismatchError
            If *name* already exists with a different dimensionality.
        """
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")

        existing = self._call(lambda: self.store.get_index_dimension(name), f"describe {name}")
        if existing is None:
            logger.info("Creating index %r (dimension=%d)", name, dimension)
            self._call(lambda: self.store.create_index(name, dimension), f"create {name}")
            # a concurrent creator may have won with another dimension
            existing = self._call(lambda: self.store.get_index_dimension(name), f"describe {name}")
        if existing is not None and existing != dimension:
            raise DimensionMismatchError(name, existing, dimension)
        logger.debug("Index %r ready (dimension=%d)", name, dimension)

    def upsert(
        self,
        name: str,
        embedded_chunks: Sequence[EmbeddedChunk],
        cancel: CancellationToken | None = None,
    ) -> int:
        """Write *embedded_chunks* as records into *name*; return the number written.

        Raises
        ------
        DimensionMismatchError
            If a vector's length differs from the index dimensionality.
        UpsertError
            If a batch still fails after all attempts.  Earlier batches
            remain written; re-running the same input is safe.
        PipelineCancelled
            If *cancel* is set before the next batch.  Under
            :attr:`ReingestPolicy.REPLACE` the token is checked before each
            source is deleted, never between its deletion and its rewrite.
        """
        if not embedded_chunks:
            return 0

        dimension = self._call(lambda: self.store.get_index_dimension(name), f"describe {name}")
        if dimension is None:
            raise VectorStoreError(f"Index {name!r} does not exist; call ensure_index first")
        for ec in embedded_chunks:
            if ec.dimension != dimension:
                raise DimensionMismatchError(name, dimension, ec.dimension)

        base = time.time_ns()
        records = [to_record(ec, base + i) for i, ec in enumerate(embedded_chunks)]

        written = 0
        for source_id, group in self._write_groups(records):
            if source_id is not None:
                # a source's delete and its rewrite are never split by a cancel
                if cancel is not None:
                    cancel.raise_if_cancelled(f"replace of {source_id}")
                logger.info("Removing previous records of %s from %r", source_id, name)
                self._call(lambda sid=source_id: self.store.delete_source(name, sid), f"delete {source_id}")

            for offset in range(0, len(group), self.upsert_batch_size):
                start = written
                if cancel is not None and source_id is None:
                    cancel.raise_if_cancelled(f"upsert batch starting at {start}")
                batch = group[offset : offset + self.upsert_batch_size]
                end = start + len(batch)
                try:
                    self._call(lambda b=batch: self.store.upsert(name, b), f"upsert {start}-{end}")
                except VectorStoreError as exc:
                    raise UpsertError(
                        f"Upsert of records {start}-{end} into {name!r} failed: {exc}",
                        {"index": name, "batch_start": start, "batch_end": end, "written": written},
                    ) from exc
                written += len(batch)
                logger.info("  upserted records %d-%d into %r", start, end, name)
        return written

    # -- internals ------------------------------------------------------------

    def _write_groups(self, records: list[IndexRecord]) -> list[tuple[str | None, list[IndexRecord]]]:
        """Split *records* into write units: one per source under REPLACE, else one."""
        if self.policy is not ReingestPolicy.REPLACE:
            return [(None, records)]
        groups: dict[str, list[IndexRecord]] = {}
        for record in records:
            groups.setdefault(record.metadata["source_id"], []).append(record)
        return list(groups.items())

    def _call(self, fn: Callable[[], T], label: str) -> T:
        """Run one store call with a timeout and retries on :class:`VectorStoreError`."""
        retrying = Retrying(
            retry=retry_if_exception_type(VectorStoreError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max),
            before_sleep=lambda state: logger.warning(
                "Vector store %s failed (attempt %d/%d), retrying: %s",
                label,
                state.attempt_number,
                self.max_attempts,
                state.outcome.exception(),
            ),
        )
        try:
            return retrying(self._with_timeout, fn, label)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise VectorStoreError(
                f"Vector store {label} failed after {self.max_attempts} attempts: {cause}"
            ) from cause

    def _with_timeout(self, fn: Callable[[], T], label: str) -> T:
        if self.timeout is None:
            return fn()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="store")
        try:
            return pool.submit(fn).result(timeout=self.timeout)
        except FutureTimeoutError as exc:
            raise VectorStoreError(f"Vector store {label} timed out after {self.timeout}s") from exc
        finally:
            pool.shutdown(wait=False)
