"""Deterministic text analysis helpers used by the lexical reranker and embedder."""

from __future__ import annotations

import re
from typing import List, Sequence, Set

STOP_WORDS: Set[str] = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "should", "could", "can", "may", "might", "must", "i", "you",
    "he", "she", "it", "we", "they", "this", "that", "these", "those"
}

_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\w+")


def whitespace_tokens(text: str) -> List[str]:
    """Lowercase ``text`` and split on runs of whitespace (empty tokens dropped)."""
    if not text:
        return []
    return [tok for tok in _WHITESPACE.split(text.lower()) if tok]


def word_tokens(text: str, drop_stop_words: bool = False) -> List[str]:
    """Lowercased alphanumeric word tokens, optionally without stop words."""
    if not text:
        return []
    words = _WORD.findall(text.lower())
    if drop_stop_words:
        words = [w for w in words if w not in STOP_WORDS]
    return words


def word_overlap_score(query: str, document: str) -> float:
    """Count query words present in the document, normalized by document length.

    Every query token (duplicates included) that appears in the document adds
    one point; the total is divided by the document's token count so long
    documents do not win by size alone.

    Args:
        query: Query text
        document: Candidate document text

    Returns:
        Non-negative relevance score
    """
    query_words: Sequence[str] = whitespace_tokens(query)
    doc_words = whitespace_tokens(document)
    if not query_words or not doc_words:
        return 0.0
    doc_vocab = set(doc_words)
    matches = sum(1 for word in query_words if word in doc_vocab)
    return matches / max(len(doc_words), 1)


__all__ = [
    "STOP_WORDS",
    "whitespace_tokens",
    "word_tokens",
    "word_overlap_score",
]
