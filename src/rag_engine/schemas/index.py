"""Persisted index metadata and index statistics."""

from __future__ import annotations

from typing import List

from pydantic import Field

from .base import SchemaBase


class ChunkRecord(SchemaBase):
    id: int
    content: str
    source: str
    chunk_index: int = Field(alias="chunkIndex")


class IndexMetadata(SchemaBase):
    """Metadata artifact layout; the on-disk keys are camelCase."""

    chunks: List[ChunkRecord] = Field(default_factory=list)
    embedding_dimension: int = Field(default=0, alias="embeddingDimension")
    total_chunks: int = Field(default=0, alias="totalChunks")


class IndexStats(SchemaBase):
    total_chunks: int
    embedding_dimension: int
    embedded_chunks: int
    has_embeddings: bool
    is_ready: bool
