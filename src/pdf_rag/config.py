"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from pdf_rag.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding model
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_provider: Literal["openai", "huggingface"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    embedding_batch_size: int = Field(default=100, gt=0)
    embedding_concurrency: int = Field(default=2, gt=0)
    embedding_max_attempts: int = Field(default=5, gt=0)
    request_timeout: float = Field(default=60.0, gt=0, description="Seconds per provider/store call")

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    index_name: str = "documents"
    upsert_batch_size: int = Field(default=500, gt=0)

    # Chunking
    chunk_size: int = Field(default=512, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)
    chunk_strategy: Literal["fixed", "recursive"] = "fixed"

    # Ingestion / retrieval
    documents_dir: str = "documents"
    extract_workers: int = Field(default=4, gt=0)
    top_k: int = Field(default=5, gt=0)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_chunking(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self

    def require_ingestion_config(self) -> None:
        """Raise :class:`ConfigurationError` if a required setting is missing."""
        missing: list[str] = []
        if self.embedding_provider == "openai" and not self.openai_api_key.strip():
            missing.append("OPENAI_API_KEY")
        if not self.chroma_host.strip():
            missing.append("CHROMA_HOST")
        if not self.index_name.strip():
            missing.append("INDEX_NAME")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                {"missing": missing},
            )
