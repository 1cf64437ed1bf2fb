"""Schema exports."""

from .base import SchemaBase, Severity
from .chunk import Chunk, RerankResult, SourceDocument
from .errors import EngineError, EngineErrorSource, ErrorKind
from .event import Event, EventType
from .index import ChunkRecord, IndexMetadata, IndexStats
from .results import (
    EngineState,
    IngestResult,
    OperationResult,
    QueryResult,
    ResultStatus,
)
from .settings import EmbeddingConfig, RetrievalSettings

__all__ = [
    "SchemaBase",
    "Severity",
    "Chunk",
    "RerankResult",
    "SourceDocument",
    "EngineError",
    "EngineErrorSource",
    "ErrorKind",
    "Event",
    "EventType",
    "ChunkRecord",
    "IndexMetadata",
    "IndexStats",
    "EngineState",
    "IngestResult",
    "OperationResult",
    "QueryResult",
    "ResultStatus",
    "EmbeddingConfig",
    "RetrievalSettings",
]
