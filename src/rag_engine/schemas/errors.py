"""Engine error records returned across the public API boundary."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .base import SchemaBase, Severity


class ErrorKind(str, Enum):
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_CHUNK_CONFIG = "invalid_chunk_config"
    STORAGE_CORRUPT = "storage_corrupt"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PERSISTENCE_FAILURE = "persistence_failure"
    NOT_READY = "not_ready"
    UNKNOWN = "unknown"


class EngineErrorSource(str, Enum):
    CHUNKER = "chunker"
    EMBEDDER = "embedder"
    VECTOR_INDEX = "vector_index"
    RERANKER = "reranker"
    ENGINE = "engine"
    GENERATION = "generation"


class EngineError(SchemaBase):
    kind: ErrorKind
    message: str
    source: EngineErrorSource = Field(default=EngineErrorSource.ENGINE)
    severity: Severity = Field(default=Severity.ERROR)
    details: Optional[Dict[str, Any]] = Field(default=None)
    timestamp: Optional[str] = Field(default=None)
