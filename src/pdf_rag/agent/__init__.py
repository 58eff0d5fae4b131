"""
Agent boundary — retrieval tools for an external LangChain / LangGraph agent.

Public API
----------
- :func:`make_vector_search_tool` — semantic search, optionally restricted by file name.
- :func:`make_document_search_tool` — search within one source document.
"""

from pdf_rag.agent.tools import make_document_search_tool, make_vector_search_tool

__all__ = [
    "make_document_search_tool",
    "make_vector_search_tool",
]
