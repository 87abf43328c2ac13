"""
Result type and collaborator protocols for retrieval.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .index import Item, StoredEmbedding


@dataclass
class RetrievalResult:
    """One ranked item from a retrieval run."""

    item: Item
    score: float
    source: str
    rank: int = 0


class ItemSource(Protocol):
    """Read side of the backing store used by the caches."""

    def list_all_items(self, limit: int) -> List[Item]:
        """Return up to ``limit`` items sorted by ``posted_at`` descending."""
        ...

    def list_embeddings(self) -> List[StoredEmbedding]:
        """Return every stored (item_id, vector, model_tag) triple."""
        ...


class Embedder(Protocol):
    """Text to fixed-length vector capability."""

    model_tag: str

    def embed(self, text: str) -> Optional[Sequence[float]]:
        """Return a vector, or None when embedding is unavailable."""
        ...
