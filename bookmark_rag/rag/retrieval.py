"""
Staged retrieval over the cached corpus.

Stages run in order and stop as soon as the result cap is reached:

1. all items newest first, restricted to the requested date window
2. author handle matches
3. keyword substring matches on content, handle and display name
4. hybrid semantic search, only when the cheaper stages found too little
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .cache import CorpusCache, VectorCache
from .config import RAGConfig
from .index import Item
from .query_interpreter import SearchParams
from .retriever import Embedder, RetrievalResult
from .scoring import HybridScorer, ScoredItem

logger = logging.getLogger(__name__)

FILTER_MATCH_SCORE = 1.0


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def filter_by_date(items: Sequence[Item], params: SearchParams, now: dt.datetime) -> List[Item]:
    if params.date_range is None:
        return list(items)
    start = params.date_range.start(now)
    return [it for it in items if start <= it.posted_at <= now]


def item_matches_keywords(item: Item, keywords: Sequence[str]) -> bool:
    content = item.content.lower()
    handle = item.author_handle.lower()
    name = item.author_name.lower()
    for kw in keywords:
        if kw in content or kw in handle or kw in name:
            return True
    return False


@dataclass
class RetrievalPipeline:
    """Author, keyword and semantic-fallback search over CorpusCache/VectorCache."""

    corpus_cache: CorpusCache
    vector_cache: VectorCache
    embedder: Optional[Embedder] = None
    scorer: HybridScorer = field(default_factory=HybridScorer)
    config: RAGConfig = field(default_factory=RAGConfig)
    clock: Callable[[], dt.datetime] = _utcnow

    def search(self, params: SearchParams, now: Optional[dt.datetime] = None) -> List[Item]:
        """Ranked items for ``params``, capped at ``config.max_results``."""
        return [r.item for r in self.retrieve(params, now=now)]

    def retrieve(
        self, params: SearchParams, now: Optional[dt.datetime] = None
    ) -> List[RetrievalResult]:
        now = now or self.clock()
        cap = self.config.max_results

        corpus = self.corpus_cache.get()
        items = sorted(corpus.values(), key=lambda it: it.posted_at, reverse=True)
        items = filter_by_date(items, params, now)

        results: List[RetrievalResult] = []
        added: set[str] = set()

        def add(item: Item, score: float, source: str) -> None:
            results.append(
                RetrievalResult(item=item, score=score, source=source, rank=len(results) + 1)
            )
            added.add(item.id)

        if params.authors:
            authors = {a.lower() for a in params.authors}
            for item in items:
                if len(results) >= cap:
                    break
                if item.author_handle.lower() in authors:
                    add(item, FILTER_MATCH_SCORE, "author")

        keywords = [k.lower() for k in params.keywords if k]
        if keywords and len(results) < cap:
            for item in items:
                if len(results) >= cap:
                    break
                if item.id in added:
                    continue
                if item_matches_keywords(item, keywords):
                    add(item, FILTER_MATCH_SCORE, "keyword")

        if len(results) < self.config.semantic_trigger:
            query = " ".join(list(params.keywords) + list(params.topics or []))
            if query.strip():
                for scored in self.semantic_search(query, items, limit=self.config.semantic_limit):
                    if len(results) >= cap:
                        break
                    if scored.item.id in added:
                        continue
                    add(scored.item, scored.hybrid, "semantic")

        logger.debug(
            "Retrieved %s items (%s candidates after date filter)", len(results), len(items)
        )
        return results

    def semantic_search(
        self, query: str, candidates: Sequence[Item], limit: int = 20
    ) -> List[ScoredItem]:
        """Hybrid-score ``candidates`` against ``query``; keyword-only when no vector is available."""
        if not candidates:
            return []
        query_vector = self.embedder.embed(query) if self.embedder is not None else None
        vectors: Dict[str, Sequence[float]] = {}
        if query_vector is None:
            logger.info("Query embedding unavailable, semantic stage uses keyword scores only")
        else:
            vectors = self.vector_cache.get()
        return self.scorer.rank(
            query,
            candidates,
            query_vector=query_vector,
            vectors=vectors,
            limit=limit,
        )
