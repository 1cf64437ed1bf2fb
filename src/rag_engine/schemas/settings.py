"""Runtime configuration schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator

from .base import SchemaBase


class EmbeddingConfig(SchemaBase):
    provider: str = Field(default="hashing", description="hashing | ollama")
    dimension: int = Field(default=384, gt=0)
    model: str = Field(default="nomic-embed-text")
    base_url: Optional[str] = Field(default=None)
    timeout: int = Field(default=30, gt=0)


class RetrievalSettings(SchemaBase):
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=150, ge=0)
    top_k: int = Field(default=5, gt=0)
    rerank_enabled: bool = Field(default=True)
    rerank_top_n: int = Field(default=5, gt=0)
    index_file: str = Field(default="rag_index.json")
    vectors_file: str = Field(default="rag_vectors.bin")
    max_workers: int = Field(default=2, gt=0)
    generation_timeout_s: float = Field(default=65.0, gt=0)
    max_response_chars: int = Field(default=15000, gt=0)
    history_messages: int = Field(default=5, ge=0)
    max_history_messages: int = Field(default=20, gt=0)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "RetrievalSettings":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self
