"""Runtime chunk, document and rerank records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class SourceDocument:
    text: str
    source: Optional[str] = None


@dataclass
class Chunk:
    """A contiguous slice of a source document, the unit of retrieval.

    ``embedding`` is a float32 copy of the chunk's slice of the index buffer,
    or None until an embedding has been generated.
    """

    id: int
    content: str
    source: str
    chunk_index: int
    embedding: Optional[np.ndarray] = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Chunk):
            return NotImplemented
        if (self.id, self.content, self.source, self.chunk_index) != (
            other.id, other.content, other.source, other.chunk_index
        ):
            return False
        if self.embedding is None or other.embedding is None:
            return self.embedding is None and other.embedding is None
        return bool(np.array_equal(self.embedding, other.embedding))


@dataclass
class RerankResult:
    index: int
    score: float
    document: str
