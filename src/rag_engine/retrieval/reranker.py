"""Reranker interface, the lexical word-overlap reranker, and the fallback policy.

A reranker scores a candidate list produced by vector search. Indices in its
output always refer to positions in the candidate list, never to chunk ids.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence, Tuple

from rag_engine.schemas import RerankResult
from rag_engine.utils.text_analysis import word_overlap_score

logger = logging.getLogger(__name__)


class RerankerProvider(Protocol):
    """Protocol for rerankers (lexical heuristics or cross-encoder models)."""

    def is_ready(self) -> bool:
        ...

    def score(self, query: str, candidates: Sequence[str]) -> List[RerankResult]:
        """Return results ordered best first; the caller truncates to top_n."""
        ...


class KeywordOverlapReranker:
    """Scores candidates by query-word overlap normalized by candidate length."""

    def __init__(self, ready: bool = True) -> None:
        self._ready = ready

    def is_ready(self) -> bool:
        return self._ready

    def score(self, query: str, candidates: Sequence[str]) -> List[RerankResult]:
        results = [
            RerankResult(index=i, score=word_overlap_score(query, doc), document=doc)
            for i, doc in enumerate(candidates)
        ]
        # sort is stable, so equal scores keep candidate order
        results.sort(key=lambda r: r.score, reverse=True)
        return results


def positional_results(candidates: Sequence[str], top_n: int) -> List[RerankResult]:
    """Untouched vector-search order with decreasing placeholder scores."""
    return [
        RerankResult(index=i, score=1.0 - i * 0.1, document=doc)
        for i, doc in enumerate(candidates[: max(top_n, 0)])
    ]


def rerank_candidates(
    reranker: RerankerProvider,
    query: str,
    candidates: Sequence[str],
    top_n: int,
) -> Tuple[List[RerankResult], bool]:
    """Rerank ``candidates`` and truncate to ``top_n``.

    A reranker that is not ready, or raises, degrades to the original order.

    Returns:
        Tuple of (results, reranked). ``reranked`` is False when the
        positional fallback was used.
    """
    if not candidates or top_n <= 0:
        return [], False

    try:
        ready = reranker.is_ready()
    except Exception as exc:
        logger.warning("Reranker readiness check failed: %s", exc)
        ready = False
    if not ready:
        logger.warning("Reranker not ready, returning original order")
        return positional_results(candidates, top_n), False

    try:
        results = list(reranker.score(query, candidates))
    except Exception as exc:
        logger.exception("Error during reranking: %s", exc)
        return positional_results(candidates, top_n), False
    return results[:top_n], True


__all__ = [
    "KeywordOverlapReranker",
    "RerankerProvider",
    "positional_results",
    "rerank_candidates",
]
