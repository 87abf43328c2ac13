"""
Shared fakes for the LLM client, item store, embedder and clocks.
"""

from __future__ import annotations

import datetime as dt
import threading
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from bookmark_rag.llm.errors import LLMError, MissingCredentialError
from bookmark_rag.rag.index import Item, StoredEmbedding

NOW = dt.datetime(2025, 6, 15, 12, 0, tzinfo=dt.timezone.utc)


def make_item(
    item_id: str,
    content: str,
    handle: str = "alice",
    name: str = "Alice",
    days_ago: float = 1,
) -> Item:
    return Item(
        id=item_id,
        author_handle=handle,
        author_name=name,
        content=content,
        posted_at=NOW - dt.timedelta(days=days_ago),
        url=f"https://x.com/{handle}/status/{item_id}",
        tweet_id=item_id,
    )


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """In-memory item source with call counters."""

    def __init__(self, items: Sequence[Item] = (), embeddings: Sequence[StoredEmbedding] = ()):
        self.items = list(items)
        self.embeddings = list(embeddings)
        self.item_loads = 0
        self.embedding_loads = 0

    def list_all_items(self, limit: int) -> List[Item]:
        self.item_loads += 1
        ordered = sorted(self.items, key=lambda it: it.posted_at, reverse=True)
        return ordered[:limit]

    def list_embeddings(self) -> List[StoredEmbedding]:
        self.embedding_loads += 1
        return list(self.embeddings)


class FakeEmbedder:
    """Maps text to a 3-d vector by which topic words it contains."""

    model_tag = "fake-embedder"
    is_available = True

    def __init__(self, available: bool = True):
        self.available = available
        self.calls: List[str] = []

    def _vector(self, text: str) -> np.ndarray:
        text = text.lower()
        vec = np.array(
            [
                1.0 if ("python" in text or "programming" in text) else 0.0,
                1.0 if ("cooking" in text or "recipe" in text) else 0.0,
                0.1,
            ],
            dtype=np.float32,
        )
        return vec / np.linalg.norm(vec)

    def embed(self, text: str) -> Optional[np.ndarray]:
        self.calls.append(text)
        if not self.available or not text.strip():
            return None
        return self._vector(text)

    def embed_batch(self, texts: Sequence[str]) -> List[Optional[np.ndarray]]:
        return [self.embed(t) for t in texts]


class FakeStream:
    """Stand-in for ChatStream: yields scripted chunks, optionally fails or blocks."""

    def __init__(
        self,
        chunks: Sequence[str],
        error: Optional[LLMError] = None,
        block_after: Optional[int] = None,
    ):
        self.chunks = list(chunks)
        self.error = error
        self.block_after = block_after
        self.closed = False
        self.released = threading.Event()

    def __iter__(self):
        for i, chunk in enumerate(self.chunks):
            if self.block_after is not None and i == self.block_after:
                self.released.wait(timeout=5)
                if self.closed:
                    return
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self.closed = True
        self.released.set()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FakeChatClient:
    """Scripted LLM: ``parse_reply`` for complete(), ``chunks`` for stream()."""

    def __init__(
        self,
        parse_reply: str = '{"keywords": []}',
        chunks: Sequence[str] = ("An answer.",),
        api_key: str = "test-key",
        parse_error: Optional[LLMError] = None,
        open_error: Optional[LLMError] = None,
        stream_error: Optional[LLMError] = None,
        block_after: Optional[int] = None,
    ):
        self.parse_reply = parse_reply
        self.chunks = list(chunks)
        self.api_key = api_key
        self.parse_error = parse_error
        self.open_error = open_error
        self.stream_error = stream_error
        self.block_after = block_after
        self.parser_model_name = "fake-parser"
        self.complete_calls: List[Dict] = []
        self.stream_calls: List[Dict] = []
        self.streams: List[FakeStream] = []

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def complete(self, prompt, system_prompt=None, max_tokens=1024, *, model=None, temperature=0.0):
        if not self.has_credentials:
            raise MissingCredentialError()
        self.complete_calls.append(
            {"prompt": prompt, "system_prompt": system_prompt, "max_tokens": max_tokens, "model": model}
        )
        if self.parse_error is not None:
            raise self.parse_error
        return self.parse_reply

    def stream(self, messages, system_prompt=None, max_tokens=1500, *, model=None, temperature=0.3):
        if not self.has_credentials:
            raise MissingCredentialError()
        self.stream_calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "max_tokens": max_tokens}
        )
        if self.open_error is not None:
            raise self.open_error
        stream = FakeStream(self.chunks, error=self.stream_error, block_after=self.block_after)
        self.streams.append(stream)
        return stream


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_factory():
    return FakeStore


@pytest.fixture
def client_factory():
    return FakeChatClient


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def embedder_factory():
    return FakeEmbedder
