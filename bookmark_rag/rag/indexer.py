"""
Generate and persist embeddings for items that do not have one yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from .cache import VectorCache
from .embedder import SentenceEmbedder
from .index import Item

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class EmbeddingSink(Protocol):
    def items_without_embedding(self, model_tag: str) -> List[Item]:
        ...

    def save_embeddings(self, rows: Sequence[tuple[str, Sequence[float]]], model_tag: str) -> None:
        ...


@dataclass
class IndexReport:
    total: int
    embedded: int
    skipped: int


class EmbeddingIndexer:
    """Fills in missing embeddings, then invalidates the vector cache."""

    def __init__(
        self,
        store: EmbeddingSink,
        embedder: SentenceEmbedder,
        vector_cache: Optional[VectorCache] = None,
        batch_size: int = 64,
    ):
        self.store = store
        self.embedder = embedder
        self.vector_cache = vector_cache
        self.batch_size = batch_size

    def missing_count(self) -> int:
        return len(self.store.items_without_embedding(self.embedder.model_tag))

    def build_missing(self, on_progress: Optional[ProgressCallback] = None) -> IndexReport:
        model_tag = self.embedder.model_tag
        items = self.store.items_without_embedding(model_tag)
        total = len(items)
        if total == 0:
            return IndexReport(total=0, embedded=0, skipped=0)

        embedded = 0
        skipped = 0
        try:
            for start in range(0, total, self.batch_size):
                batch = items[start : start + self.batch_size]
                vectors = self.embedder.embed_batch([it.content for it in batch])
                rows = []
                for item, vec in zip(batch, vectors):
                    if vec is None:
                        skipped += 1
                        continue
                    rows.append((item.id, vec.tolist()))
                if rows:
                    self.store.save_embeddings(rows, model_tag)
                    embedded += len(rows)
                if on_progress is not None:
                    on_progress(min(start + len(batch), total), total)
        finally:
            # earlier batches are committed even when a later one fails
            if self.vector_cache is not None:
                self.vector_cache.invalidate()

        if skipped:
            logger.warning("Could not embed %s of %s items", skipped, total)
        logger.info("Embedded %s items with %s", embedded, model_tag)
        return IndexReport(total=total, embedded=embedded, skipped=skipped)
