"""
Hybrid scorer combining cosine similarity and weighted keyword matching.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .config import ScoringConfig
from .index import Item
from .utils import iter_terms


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Normalised dot product; 0.0 for missing, zero-norm or mismatched vectors."""
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.ndim != 1 or va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0 or not math.isfinite(denom):
        return 0.0
    sim = float(np.dot(va, vb)) / denom
    # Rounding can push identical vectors a hair past 1
    return max(-1.0, min(1.0, sim))


def query_terms(query: str) -> List[str]:
    return list(iter_terms(query))


def keyword_score(terms: Sequence[str], item: Item, config: Optional[ScoringConfig] = None) -> float:
    """
    Weighted keyword match of ``terms`` against an item's content and author fields.

    Each term contributes ``config.term_total_weight`` to the denominator whether
    or not it matches; matches add the field weights to the numerator.
    """
    if not terms:
        return 0.0
    config = config or ScoringConfig()
    content = item.content.lower()
    handle = item.author_handle.lower()
    name = item.author_name.lower()

    matched = 0.0
    total = 0.0
    for term in terms:
        occurrences = content.count(term)
        if occurrences:
            matched += config.content_weight
            matched += min(config.repeat_bonus_step * (occurrences - 1), config.repeat_bonus_cap)
        if term in handle:
            matched += config.handle_weight
        if term in name:
            matched += config.name_weight
        total += config.term_total_weight

    if total <= 0:
        return 0.0
    return min(matched / total, 1.0)


@dataclass
class ScoredItem:
    item: Item
    semantic: float
    keyword: float
    hybrid: float


@dataclass
class HybridScorer:
    """Scores candidates by ``w_sem * cosine + w_kw * keyword`` with a disjunctive cutoff."""

    config: ScoringConfig = field(default_factory=ScoringConfig)

    def combine(self, semantic: float, keyword: float) -> float:
        return self.config.semantic_weight * semantic + self.config.keyword_weight * keyword

    def is_relevant(self, scored: ScoredItem) -> bool:
        c = self.config
        return (
            scored.semantic >= c.min_semantic
            or scored.keyword >= c.min_keyword
            or scored.hybrid >= c.min_hybrid
        )

    def score(
        self,
        item: Item,
        terms: Sequence[str],
        query_vector: Optional[Sequence[float]] = None,
        item_vector: Optional[Sequence[float]] = None,
    ) -> ScoredItem:
        semantic = cosine_similarity(query_vector, item_vector)
        keyword = keyword_score(terms, item, self.config)
        return ScoredItem(
            item=item,
            semantic=semantic,
            keyword=keyword,
            hybrid=self.combine(semantic, keyword),
        )

    def rank(
        self,
        query: str,
        candidates: Iterable[Item],
        *,
        query_vector: Optional[Sequence[float]] = None,
        vectors: Optional[Mapping[str, Sequence[float]]] = None,
        limit: int = 20,
    ) -> List[ScoredItem]:
        """
        Score every candidate, keep the relevant ones and return the top ``limit``.

        Candidates without a stored vector (or a missing query vector) get a
        semantic score of 0 and can still qualify on keywords alone.
        """
        terms = query_terms(query)
        vectors = vectors or {}
        scored: List[ScoredItem] = []
        for item in candidates:
            s = self.score(item, terms, query_vector, vectors.get(item.id))
            if self.is_relevant(s):
                scored.append(s)
        # list.sort is stable: ties keep candidate order
        scored.sort(key=lambda s: s.hybrid, reverse=True)
        return scored[:limit]
