"""
Configuration for the retrieval pipeline.

The scoring weights and inclusion thresholds were picked empirically; they are
kept as fields so they can be tuned without touching the scorer.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ScoringConfig:
    """Weights and thresholds for hybrid scoring."""

    semantic_weight: float = 0.6
    keyword_weight: float = 0.4

    # Per-field keyword weights
    content_weight: float = 1.0
    handle_weight: float = 1.5
    name_weight: float = 1.2
    repeat_bonus_step: float = 0.2
    repeat_bonus_cap: float = 0.5
    # Added to the denominator for every query term, matched or not
    term_total_weight: float = 1.0 + 0.5 + 0.3

    # An item is kept if any one of these passes
    min_semantic: float = 0.15
    min_keyword: float = 0.3
    min_hybrid: float = 0.2


@dataclass
class RAGConfig:
    """Configuration for staged retrieval."""

    cache_ttl_seconds: float = 60.0
    corpus_limit: int = 10000
    max_results: int = 30
    # Semantic fallback runs only while fewer than this many items were found
    semantic_trigger: int = 20
    semantic_limit: int = 20
