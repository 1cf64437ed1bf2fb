"""Result types returned by the engine's public operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .chunk import Chunk
from .errors import EngineError


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    INDEXING = "indexing"
    FAILED = "failed"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class OperationResult:
    status: ResultStatus
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.status != ResultStatus.ERROR


@dataclass
class IngestResult(OperationResult):
    chunks_added: int = 0
    durable_chunks: int = 0


@dataclass
class QueryResult(OperationResult):
    chunks: List[Chunk] = field(default_factory=list)
    reranked: bool = False
