"""
RAG (Retrieval-Augmented Generation) module.

Provides retrieval components for question answering over saved bookmarks:
- TTL snapshot caches for items and embedding vectors
- Hybrid scoring (cosine similarity + weighted keyword match)
- LLM query interpretation with a deterministic keyword fallback
- Staged retrieval (author, keyword, semantic fallback)
- Embedding generation for new items
"""

from .cache import CorpusCache, SnapshotCache, VectorCache
from .config import RAGConfig, ScoringConfig
from .embedder import SentenceEmbedder
from .index import Item, StoredEmbedding, load_items
from .indexer import EmbeddingIndexer, IndexReport
from .query_interpreter import (
    DateRange,
    ParsedQuery,
    QueryInterpreter,
    SearchParams,
    fallback_params,
    parse_structured,
)
from .retrieval import RetrievalPipeline
from .retriever import RetrievalResult
from .scoring import HybridScorer, ScoredItem, cosine_similarity, keyword_score

__all__ = [
    "CorpusCache",
    "SnapshotCache",
    "VectorCache",
    "RAGConfig",
    "ScoringConfig",
    "SentenceEmbedder",
    "Item",
    "StoredEmbedding",
    "load_items",
    "EmbeddingIndexer",
    "IndexReport",
    "DateRange",
    "ParsedQuery",
    "QueryInterpreter",
    "SearchParams",
    "fallback_params",
    "parse_structured",
    "RetrievalPipeline",
    "RetrievalResult",
    "HybridScorer",
    "ScoredItem",
    "cosine_similarity",
    "keyword_score",
]
