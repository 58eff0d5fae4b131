"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from pdf_rag.ingestion.embedder import BatchEmbedder
from pdf_rag.retrieval.memory_store import InMemoryVectorStore
from tests.fakes import HashEmbeddings


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def hash_model() -> HashEmbeddings:
    return HashEmbeddings()


@pytest.fixture()
def embedder(hash_model: HashEmbeddings) -> BatchEmbedder:
    return BatchEmbedder(hash_model, batch_size=4, max_concurrency=2, backoff_initial=0)


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()
