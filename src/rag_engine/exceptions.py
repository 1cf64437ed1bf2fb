"""
Custom exception classes for the RAG engine.

This module defines structured exception types raised inside the index,
chunker and provider layers. The engine facade converts them into
``EngineError`` records so public operations never raise.
"""


class RagEngineError(Exception):
    """Base exception for all RAG engine errors."""
    pass


class ConfigLoadError(RagEngineError):
    """Error loading a configuration file."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"Error loading {file_name}: {message}")


class InvalidChunkConfig(RagEngineError):
    """Chunk window would not advance through the text."""

    def __init__(self, size: int, overlap: int):
        self.size = size
        self.overlap = overlap
        super().__init__(
            f"Invalid chunk config: size={size}, overlap={overlap} "
            f"(require size > 0 and 0 <= overlap < size)"
        )


class DimensionMismatch(RagEngineError):
    """Embedding length disagrees with the index dimension."""

    def __init__(self, expected: int, actual: int, chunk_id: int = None):
        self.expected = expected
        self.actual = actual
        self.chunk_id = chunk_id
        if chunk_id is not None:
            super().__init__(
                f"Embedding dimension mismatch at chunk {chunk_id}: expected {expected}, got {actual}"
            )
        else:
            super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


class StorageCorrupt(RagEngineError):
    """Metadata artifact is unparsable or declares impossible values."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Corrupt index storage at {path}: {message}")


class ProviderUnavailable(RagEngineError):
    """Embedding, reranker or generation collaborator is not ready."""

    def __init__(self, provider: str, message: str = "not ready"):
        self.provider = provider
        self.message = message
        super().__init__(f"Provider '{provider}' unavailable: {message}")


class PersistenceFailure(RagEngineError):
    """Writing an index artifact to disk failed."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Failed to persist {path}: {message}")
