"""FastAPI application exposing retrieval as a REST API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from pdf_rag.config import Settings
from pdf_rag.exceptions import PdfRagError
from pdf_rag.factory import build_retriever
from pdf_rag.retrieval.models import MetadataFilter

if TYPE_CHECKING:
    from pdf_rag.retrieval.retriever import SemanticRetriever


# ── Request / Response schemas ────────────────────────────────────────
class SearchRequest(BaseModel):
    """Incoming search from an agent or UI."""

    query: str = Field(min_length=1)
    k: int | None = Field(default=None, gt=0)
    filters: list[MetadataFilter] = Field(default_factory=list)


class SearchHit(BaseModel):
    """One retrieved passage."""

    id: str | None
    content: str
    score: float | None
    source_id: str
    sequence_index: int | None


class SearchResponse(BaseModel):
    hits: list[SearchHit] = []


def create_app(retriever: SemanticRetriever) -> FastAPI:
    """Build the API around an already-configured *retriever*."""
    app = FastAPI(
        title="PDF RAG Retrieval API",
        version="0.1.0",
        description="Semantic search over ingested PDF documents.",
    )

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/ready")
    def ready() -> dict[str, str]:
        """Readiness probe: the vector store must answer."""
        if not retriever.health_check():
            raise HTTPException(status_code=503, detail="vector store unavailable")
        return {"status": "ready"}

    @app.post("/search", response_model=SearchResponse)
    def search(request: SearchRequest) -> SearchResponse:
        """Run a filtered semantic search."""
        try:
            results = retriever.query(request.query, k=request.k, filters=request.filters or None)
        except PdfRagError as exc:
            raise HTTPException(status_code=503, detail=exc.message) from exc

        return SearchResponse(
            hits=[
                SearchHit(
                    id=r.citation.record_id,
                    content=r.content,
                    score=r.score,
                    source_id=r.citation.source_id,
                    sequence_index=r.citation.sequence_index,
                )
                for r in results
            ]
        )

    return app


def create_app_from_settings(settings: Settings | None = None) -> FastAPI:
    """Build the API from environment settings.

    Usable as a uvicorn factory::

        uvicorn --factory pdf_rag.serving.app:create_app_from_settings
    """
    return create_app(build_retriever(settings if settings is not None else Settings()))
