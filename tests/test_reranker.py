import pytest

from rag_engine.retrieval.reranker import (
    KeywordOverlapReranker,
    positional_results,
    rerank_candidates,
)
from rag_engine.schemas import RerankResult


class ExplodingReranker:
    def is_ready(self):
        return True

    def score(self, query, candidates):
        raise RuntimeError("model crashed")


def test_keyword_overlap_orders_by_score():
    reranker = KeywordOverlapReranker()
    candidates = ["bread flour water", "battery charging guide", "battery"]
    results = reranker.score("battery charging", candidates)

    assert [r.index for r in results] == [2, 1, 0]
    assert results[0].score == pytest.approx(1.0)
    assert results[1].score == pytest.approx(2 / 3)
    assert results[2].score == 0.0


def test_keyword_overlap_ties_keep_candidate_order():
    results = KeywordOverlapReranker().score("x", ["a b", "c d", "e f"])
    assert [r.index for r in results] == [0, 1, 2]


def test_positional_results_scores():
    results = positional_results(["a", "b", "c"], 2)
    assert [(r.index, r.document) for r in results] == [(0, "a"), (1, "b")]
    assert [r.score for r in results] == pytest.approx([1.0, 0.9])


def test_rerank_candidates_truncates_to_top_n():
    results, reranked = rerank_candidates(KeywordOverlapReranker(), "b", ["a", "b", "c"], 2)
    assert reranked is True
    assert len(results) == 2
    assert results[0].index == 1


def test_not_ready_falls_back_to_positional():
    reranker = KeywordOverlapReranker(ready=False)
    results, reranked = rerank_candidates(reranker, "c", ["a", "b", "c"], 2)

    assert reranked is False
    assert [r.index for r in results] == [0, 1]


def test_reranker_exception_falls_back():
    results, reranked = rerank_candidates(ExplodingReranker(), "q", ["a", "b"], 5)
    assert reranked is False
    assert results == [
        RerankResult(index=0, score=1.0, document="a"),
        RerankResult(index=1, score=0.9, document="b"),
    ]


def test_empty_candidates_or_top_n():
    assert rerank_candidates(KeywordOverlapReranker(), "q", [], 5) == ([], False)
    assert rerank_candidates(KeywordOverlapReranker(), "q", ["a"], 0) == ([], False)
