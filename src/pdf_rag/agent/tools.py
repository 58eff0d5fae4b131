"""LangChain tool definitions exposed to a question-answering agent.

The agent itself lives outside this package; it only sees the tools
built here.  Each factory takes the :class:`SemanticRetriever` to use,
so tests can pass one backed by fakes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_core.documents import Document
from langchain_core.tools import BaseTool, StructuredTool

from pdf_rag.retrieval.models import MetadataFilter

if TYPE_CHECKING:
    from pdf_rag.retrieval.models import RetrievalResult
    from pdf_rag.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


def _results_to_documents(results: list[RetrievalResult]) -> list[Document]:
    """Convert :class:`RetrievalResult` objects to LangChain Documents."""
    docs: list[Document] = []
    for r in results:
        meta = {k: v for k, v in r.citation.metadata.items() if k != "content"}
        docs.append(
            Document(
                page_content=r.content,
                metadata={
                    **meta,
                    "source_id": r.citation.source_id,
                    "sequence_index": r.citation.sequence_index,
                    "score": r.citation.score,
                },
            )
        )
    return docs


def make_vector_search_tool(
    retriever: SemanticRetriever,
    *,
    name: str = "vector_search",
    filename_contains: str | None = None,
    k: int | None = None,
) -> BaseTool:
    """Build a semantic-search tool over *retriever*.

    Parameters
    ----------
    retriever:
        Retriever the tool delegates to.
    name:
        Tool name shown to the agent.
    filename_contains:
        When set, every search is restricted to chunks whose ``filename``
        contains this substring (e.g. ``"Berkshire"``).
    k:
        Results per search (defaults to the retriever's ``default_k``).
    """
    filters = [MetadataFilter.contains("filename", filename_contains)] if filename_contains else None

    def vector_search(query: str) -> list[Document]:
        results = retriever.query(query, k=k, filters=filters)
        logger.info("%s returned %d results for %r", name, len(results), query)
        return _results_to_documents(results)

    description = (
        "Perform a semantic (embedding-based) search over the ingested PDF "
        "documents and return the most relevant passages."
    )
    if filename_contains:
        description += f" Only documents whose file name contains {filename_contains!r} are searched."

    return StructuredTool.from_function(vector_search, name=name, description=description)


def make_document_search_tool(retriever: SemanticRetriever, *, k: int = 10) -> BaseTool:
    """Build a tool that searches within one named source document."""

    def document_search(query: str, source_id: str) -> list[Document]:
        results = retriever.query(query, k=k, filters=[MetadataFilter.equals("source_id", source_id)])
        logger.info("document_search returned %d chunks for source_id=%r", len(results), source_id)
        return _results_to_documents(results)

    return StructuredTool.from_function(
        document_search,
        name="document_search",
        description=(
            "Search for passages inside a single document, identified by its "
            "file name (source_id)."
        ),
    )
