"""
Time-bounded snapshot caches over the backing store.

Both caches hold one full snapshot. ``get()`` reloads synchronously when the
snapshot is missing or older than the TTL; ``invalidate()`` forces the next
``get()`` to reload. Reloads happen under a per-cache lock, so concurrent
callers wait for the in-flight reload and then share its snapshot.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Generic, Optional, TypeVar

import numpy as np

from .index import Item
from .retriever import ItemSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60.0


class SnapshotCache(Generic[T]):
    """Single-snapshot cache refreshed from ``loader`` once the TTL elapses."""

    def __init__(
        self,
        loader: Callable[[], T],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.name = name
        self._lock = threading.Lock()
        self._snapshot: Optional[T] = None
        self._refreshed_at: Optional[float] = None
        self.reload_count = 0

    @property
    def last_refreshed(self) -> Optional[float]:
        return self._refreshed_at

    def _is_fresh(self, now: float) -> bool:
        if self._snapshot is None or self._refreshed_at is None:
            return False
        return now - self._refreshed_at < self.ttl_seconds

    def get(self) -> T:
        with self._lock:
            if self._is_fresh(self._clock()):
                return self._snapshot  # type: ignore[return-value]
            started = time.perf_counter()
            snapshot = self._loader()
            self._snapshot = snapshot
            self._refreshed_at = self._clock()
            self.reload_count += 1
            logger.debug(
                "%s reloaded in %.1f ms",
                self.name,
                (time.perf_counter() - started) * 1000,
            )
            return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
            self._refreshed_at = None


class VectorCache(SnapshotCache[Dict[str, np.ndarray]]):
    """item_id -> embedding vector for a single embedding model."""

    def __init__(
        self,
        store: ItemSource,
        model_tag: str,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.model_tag = model_tag
        super().__init__(self._load, ttl_seconds=ttl_seconds, clock=clock, name="vector cache")

    def _load(self) -> Dict[str, np.ndarray]:
        vectors: Dict[str, np.ndarray] = {}
        dim: Optional[int] = None
        skipped_model = 0
        skipped_dim = 0
        for emb in self.store.list_embeddings():
            if emb.model_tag != self.model_tag:
                skipped_model += 1
                continue
            vec = np.asarray(emb.vector, dtype=np.float32)
            if dim is None:
                dim = vec.shape[0]
            elif vec.shape[0] != dim:
                skipped_dim += 1
                continue
            vectors[emb.item_id] = vec
        if skipped_model or skipped_dim:
            logger.warning(
                "Ignored %s embeddings from other models and %s with mismatched dimensions",
                skipped_model,
                skipped_dim,
            )
        return vectors


class CorpusCache(SnapshotCache[Dict[str, Item]]):
    """item_id -> Item, in store order (newest first)."""

    def __init__(
        self,
        store: ItemSource,
        *,
        limit: int = 10000,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.limit = limit
        super().__init__(self._load, ttl_seconds=ttl_seconds, clock=clock, name="corpus cache")

    def _load(self) -> Dict[str, Item]:
        return {item.id: item for item in self.store.list_all_items(self.limit)}
