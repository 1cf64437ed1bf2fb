"""Fixed-size character chunking with overlap."""

from __future__ import annotations

from typing import List

from rag_engine.exceptions import InvalidChunkConfig


def normalize_text(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF and trim surrounding whitespace."""
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()


def validate_chunk_config(size: int, overlap: int) -> None:
    """Raise InvalidChunkConfig unless the window strictly advances."""
    if size <= 0 or overlap < 0 or size - overlap <= 0:
        raise InvalidChunkConfig(size, overlap)


def chunk_text(text: str, size: int, overlap: int) -> List[str]:
    """Split text into windows of ``size`` characters overlapping by ``overlap``.

    The final window is clipped at the end of the text and may be shorter;
    no empty trailing chunk is produced. Empty (or whitespace-only) text
    yields an empty list.

    Args:
        text: Raw document text
        size: Window size in characters
        overlap: Characters shared by consecutive windows

    Returns:
        Ordered list of chunk strings

    Raises:
        InvalidChunkConfig: If ``size <= 0``, ``overlap < 0`` or ``overlap >= size``
    """
    validate_chunk_config(size, overlap)

    normalized = normalize_text(text or "")
    if not normalized:
        return []

    step = size - overlap
    length = len(normalized)
    chunks: List[str] = []
    start = 0
    while start < length:
        end = min(start + size, length)
        chunks.append(normalized[start:end])
        if end == length:
            break
        start += step
    return chunks


__all__ = ["chunk_text", "normalize_text", "validate_chunk_config"]
