"""Utility modules for the RAG engine."""

from .text_analysis import (
    whitespace_tokens,
    word_tokens,
    word_overlap_score,
    STOP_WORDS,
)

from .json_io import (
    read_json_safe,
    write_json_safe,
    write_bytes_atomic,
    validate_json_structure,
)

__all__ = [
    # Text analysis
    "whitespace_tokens",
    "word_tokens",
    "word_overlap_score",
    "STOP_WORDS",
    # JSON I/O utils
    "read_json_safe",
    "write_json_safe",
    "write_bytes_atomic",
    "validate_json_structure",
]
