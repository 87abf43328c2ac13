"""
Tests for hybrid scoring: cosine similarity, keyword scoring, ranking.
"""

from __future__ import annotations

import numpy as np
import pytest

from bookmark_rag.rag import HybridScorer, ScoringConfig, cosine_similarity, keyword_score
from bookmark_rag.rag.scoring import query_terms


# --- Cosine ---


def test_cosine_identical_vectors_is_one():
    v = [0.3, -1.2, 4.0]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_cosine_zero_norm_and_mismatch_are_zero():
    """Degenerate inputs score 0 instead of raising."""
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity(None, [1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


def test_cosine_stays_in_bounds():
    rng = np.random.default_rng(7)
    for _ in range(200):
        a = rng.normal(size=16)
        b = rng.normal(size=16)
        sim = cosine_similarity(a, b)
        assert -1.0 <= sim <= 1.0
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


# --- Keyword score ---


def test_query_terms_drop_stopwords_and_short_tokens():
    assert query_terms("What is a Machine Learning model, x?") == ["machine", "learning", "model"]


def test_keyword_score_weights_fields(item_factory):
    """A handle match outweighs a content match."""
    in_content = item_factory("1", "notes on rust", handle="bob", name="Bob")
    in_handle = item_factory("2", "unrelated", handle="rustacean", name="Bob")
    terms = ["rust"]
    assert keyword_score(terms, in_content) == pytest.approx(1.0 / 1.8)
    assert keyword_score(terms, in_handle) == pytest.approx(1.5 / 1.8)


def test_keyword_score_repeat_bonus_is_capped(item_factory):
    item = item_factory("1", "go " * 20, handle="x", name="y")
    # 1.0 + min(0.2 * 19, 0.5)
    assert keyword_score(["go"], item) == pytest.approx(1.5 / 1.8)


def test_keyword_score_never_exceeds_one(item_factory):
    item = item_factory("1", "ai ai ai", handle="ai", name="ai")
    assert keyword_score(["ai"], item) == 1.0
    assert keyword_score([], item) == 0.0


# --- Ranking ---


def test_machine_learning_keyword_only(item_factory):
    """Without embeddings, keyword matches alone decide inclusion."""
    ml = item_factory("ml", "I love machine learning", handle="a", name="A")
    weather = item_factory("w", "weather is nice", handle="b", name="B")
    ranked = HybridScorer().rank("machine learning", [ml, weather])
    assert [s.item.id for s in ranked] == ["ml"]
    assert ranked[0].keyword > 0.3
    assert ranked[0].semantic == 0.0


def test_semantic_signal_rescues_keyword_miss(item_factory):
    item = item_factory("1", "completely different words", handle="a", name="A")
    ranked = HybridScorer().rank(
        "machine learning",
        [item],
        query_vector=[1.0, 0.0],
        vectors={"1": [0.9, 0.1]},
    )
    assert len(ranked) == 1
    assert ranked[0].semantic > 0.15
    assert ranked[0].keyword == 0.0


def test_rank_is_stable_and_limited(item_factory):
    items = [item_factory(str(i), "python tips", handle="a", name="A") for i in range(5)]
    ranked = HybridScorer().rank("python", items, limit=3)
    assert [s.item.id for s in ranked] == ["0", "1", "2"]


def test_rank_sorts_by_hybrid_desc(item_factory):
    weak = item_factory("weak", "python", handle="a", name="A")
    strong = item_factory("strong", "python python python", handle="python", name="A")
    ranked = HybridScorer().rank("python", [weak, strong])
    assert [s.item.id for s in ranked] == ["strong", "weak"]
    assert ranked[0].hybrid >= ranked[1].hybrid


@pytest.mark.parametrize("semantic,keyword", [(0.9, 0.2), (0.5, 0.1), (0.31, 0.3)])
def test_hybrid_increases_with_semantic_weight_when_semantic_dominates(semantic, keyword):
    """With w_k = 1 - w_s and semantic > keyword, hybrid grows with w_s."""
    previous = None
    for w_s in (0.0, 0.25, 0.5, 0.75, 1.0):
        scorer = HybridScorer(ScoringConfig(semantic_weight=w_s, keyword_weight=1.0 - w_s))
        hybrid = scorer.combine(semantic, keyword)
        if previous is not None:
            assert hybrid >= previous
        previous = hybrid


@pytest.mark.parametrize("semantic,keyword", [(0.2, 0.9), (0.1, 0.5), (0.3, 0.31), (0.0, 1.0)])
def test_hybrid_increases_with_keyword_weight_when_keywords_dominate(semantic, keyword):
    """With w_s = 1 - w_k and keyword > semantic, hybrid grows with w_k."""
    previous = None
    for w_k in (0.0, 0.25, 0.5, 0.75, 1.0):
        scorer = HybridScorer(ScoringConfig(semantic_weight=1.0 - w_k, keyword_weight=w_k))
        hybrid = scorer.combine(semantic, keyword)
        if previous is not None:
            assert hybrid >= previous
        previous = hybrid
