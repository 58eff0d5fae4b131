"""Batched embedding with retries, bounded concurrency and order preservation.

:class:`BatchEmbedder` wraps any LangChain ``Embeddings`` implementation.
Its one hard guarantee is *alignment*: ``embed_texts(texts)[i]`` is the
embedding of ``texts[i]``.  A batch that cannot be embedded after the
configured number of attempts aborts the run; vectors are never dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, TypeVar

from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from pdf_rag.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingAlignmentError,
    EmbeddingError,
)
from pdf_rag.ingestion.models import Chunk, EmbeddedChunk

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from pdf_rag.config import Settings
    from pdf_rag.ingestion.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_embedding_model(settings: Settings) -> Embeddings:
    """Return the LangChain embedding model selected by *settings*."""
    provider = settings.embedding_provider.lower()
    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(
            model=settings.embedding_model,
            api_key=settings.openai_api_key,
            timeout=settings.request_timeout,
            max_retries=0,  # retries are handled by BatchEmbedder
        )
    if provider == "huggingface":
        try:
            from langchain_huggingface import HuggingFaceEmbeddings
        except ImportError as exc:
            raise ConfigurationError(
                "embedding_provider='huggingface' needs the 'huggingface' extra: pip install pdf-rag[huggingface]"
            ) from exc

        return HuggingFaceEmbeddings(
            model_name=settings.embedding_model,
            encode_kwargs={"normalize_embeddings": True},
        )
    raise ConfigurationError(f"Unsupported embedding_provider={settings.embedding_provider!r}")


class BatchEmbedder:
    """Embed text in provider-sized batches.

    Parameters
    ----------
    model:
        A LangChain ``Embeddings`` instance (OpenAI, HuggingFace, a fake …).
    batch_size:
        Maximum number of texts per provider request.
    max_concurrency:
        Maximum number of batches in flight at once.
    max_attempts:
        Attempts per batch (first try included) before giving up.
    backoff_initial / backoff_max:
        Exponential backoff bounds, in seconds.
    """

    def __init__(
        self,
        model: Embeddings,
        *,
        batch_size: int = 100,
        max_concurrency: int = 2,
        max_attempts: int = 5,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self.model = model
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

    @classmethod
    def from_settings(cls, settings: Settings, model: Embeddings | None = None) -> BatchEmbedder:
        return cls(
            model if model is not None else build_embedding_model(settings),
            batch_size=settings.embedding_batch_size,
            max_concurrency=settings.embedding_concurrency,
            max_attempts=settings.embedding_max_attempts,
        )

    # -- public API -----------------------------------------------------------

    def embed_texts(
        self,
        texts: Sequence[str],
        cancel: CancellationToken | None = None,
    ) -> list[list[float]]:
        """Return one vector per text, in input order."""
        if not texts:
            return []

        ranges = [
            (start, min(start + self.batch_size, len(texts)))
            for start in range(0, len(texts), self.batch_size)
        ]
        logger.info(
            "Embedding %d texts in %d batches (batch_size=%d, concurrency=%d)",
            len(texts), len(ranges), self.batch_size, self.max_concurrency,
        )

        results: list[list[list[float]] | None] = [None] * len(ranges)
        with ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="embed") as pool:
            in_flight: dict[Future, int] = {}
            pending = list(enumerate(ranges))
            try:
                while pending or in_flight:
                    while pending and len(in_flight) < self.max_concurrency:
                        if cancel is not None and cancel.cancelled:
                            break
                        idx, (start, end) = pending.pop(0)
                        future = pool.submit(self._embed_batch, texts[start:end], start, end)
                        in_flight[future] = idx
                    if not in_flight:
                        break
                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        idx = in_flight.pop(future)
                        results[idx] = future.result()
            except BaseException:
                pending.clear()
                for future in in_flight:
                    future.cancel()
                raise

        if pending and cancel is not None:
            cancel.raise_if_cancelled(f"embedding batch {pending[0][1][0]}-{pending[0][1][1]}")

        vectors = [vec for batch in results for vec in batch]  # type: ignore[union-attr]
        if len(vectors) != len(texts):
            raise EmbeddingAlignmentError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}",
                {"expected": len(texts), "actual": len(vectors)},
            )
        self._check_dimensions(vectors)
        return vectors

    def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        cancel: CancellationToken | None = None,
    ) -> list[EmbeddedChunk]:
        vectors = self.embed_texts([c.text for c in chunks], cancel=cancel)
        return [EmbeddedChunk(vector=vec, chunk=chunk) for vec, chunk in zip(vectors, chunks, strict=True)]

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string (same retry policy as batches)."""
        return self._with_retries(lambda: self.model.embed_query(text), "query")

    # -- internals ------------------------------------------------------------

    def _embed_batch(self, batch: Sequence[str], start: int, end: int) -> list[list[float]]:
        label = f"batch {start}-{end}"
        vectors = self._with_retries(lambda: self.model.embed_documents(list(batch)), label)
        if len(vectors) != len(batch):
            raise EmbeddingAlignmentError(
                f"Provider returned {len(vectors)} vectors for {len(batch)} texts ({label})",
                {"batch_start": start, "batch_end": end, "expected": len(batch), "actual": len(vectors)},
            )
        logger.info("  embedded %s", label)
        return vectors

    def _with_retries(self, call: Callable[[], T], label: str) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max),
            before_sleep=lambda state: logger.warning(
                "Embedding %s failed (attempt %d/%d), retrying: %s",
                label,
                state.attempt_number,
                self.max_attempts,
                state.outcome.exception(),
            ),
        )
        try:
            return retrying(call)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise EmbeddingError(
                f"Embedding {label} failed after {self.max_attempts} attempts: {cause}",
                {"target": label, "attempts": self.max_attempts},
            ) from cause

    @staticmethod
    def _check_dimensions(vectors: list[list[float]]) -> None:
        dim = len(vectors[0])
        for vec in vectors:
            if len(vec) != dim:
                raise DimensionMismatchError("<embedding response>", dim, len(vec))
