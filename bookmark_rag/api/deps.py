"""
Build the bookmark services for the API (used in lifespan).
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from bookmark_rag.db.session import SessionLocal, engine, init_db
from bookmark_rag.db.store import SqlItemStore
from bookmark_rag.generation import GenerationConfig, Summarizer
from bookmark_rag.llm import ChatClient, create_client
from bookmark_rag.orchestrator import (
    AnswerStreamer,
    ConversationStore,
    InMemoryConversationStore,
)
from bookmark_rag.rag import (
    CorpusCache,
    EmbeddingIndexer,
    QueryInterpreter,
    RAGConfig,
    RetrievalPipeline,
    SentenceEmbedder,
    VectorCache,
)

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION = "default"
# In-memory conversations kept before the least recently used is dropped
MAX_CONVERSATIONS = 100


@dataclass
class Services:
    """Everything the routes need; one instance per app."""

    store: SqlItemStore
    client: ChatClient
    embedder: SentenceEmbedder
    corpus_cache: CorpusCache
    vector_cache: VectorCache
    pipeline: RetrievalPipeline
    interpreter: QueryInterpreter
    indexer: EmbeddingIndexer
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)
    summarizer: Optional[Summarizer] = None
    streamers: OrderedDict[str, AnswerStreamer] = field(default_factory=OrderedDict)
    max_conversations: int = MAX_CONVERSATIONS
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def conversation_store(self, conversation_id: str) -> ConversationStore:
        # Only the default conversation is persisted; others live in memory
        if conversation_id == DEFAULT_CONVERSATION:
            return self.store
        return InMemoryConversationStore()

    def streamer_for(self, conversation_id: Optional[str]) -> AnswerStreamer:
        conversation_id = conversation_id or DEFAULT_CONVERSATION
        with self._lock:
            streamer = self.streamers.get(conversation_id)
            if streamer is not None:
                self.streamers.move_to_end(conversation_id)
                return streamer
            streamer = AnswerStreamer(
                client=self.client,
                interpreter=self.interpreter,
                pipeline=self.pipeline,
                store=self.conversation_store(conversation_id),
                config=self.generation_config,
            )
            self.streamers[conversation_id] = streamer
            self._evict()
            return streamer

    def existing_streamer(self, conversation_id: str) -> Optional[AnswerStreamer]:
        with self._lock:
            return self.streamers.get(conversation_id)

    def _evict(self) -> None:
        # the default conversation lives in SQL and is never dropped
        while len(self.streamers) > self.max_conversations:
            oldest = next(
                (cid for cid in self.streamers if cid != DEFAULT_CONVERSATION),
                None,
            )
            if oldest is None:
                return
            del self.streamers[oldest]
            logger.info("Dropped idle conversation %s", oldest)


def build_services(
    session_factory: Optional[sessionmaker[Session]] = None,
    client: Optional[ChatClient] = None,
    embedder: Optional[SentenceEmbedder] = None,
    rag_config: Optional[RAGConfig] = None,
    generation_config: Optional[GenerationConfig] = None,
) -> Services:
    """
    Wire store, caches, embedder, LLM client and retrieval pipeline.

    The embedding model is loaded lazily on first use, so startup stays fast
    and a missing model only disables the semantic stage.
    """
    if session_factory is None:
        init_db(engine)
        session_factory = SessionLocal
    rag_config = rag_config or RAGConfig()
    generation_config = generation_config or GenerationConfig()

    store = SqlItemStore(session_factory)
    client = client or create_client()
    embedder = embedder or SentenceEmbedder()
    corpus_cache = CorpusCache(
        store, limit=rag_config.corpus_limit, ttl_seconds=rag_config.cache_ttl_seconds
    )
    vector_cache = VectorCache(
        store, embedder.model_tag, ttl_seconds=rag_config.cache_ttl_seconds
    )
    pipeline = RetrievalPipeline(
        corpus_cache=corpus_cache,
        vector_cache=vector_cache,
        embedder=embedder,
        config=rag_config,
    )
    interpreter = QueryInterpreter(client, max_tokens=generation_config.parse_max_tokens)
    indexer = EmbeddingIndexer(store, embedder, vector_cache=vector_cache)
    if not client.has_credentials:
        logger.warning("LLM_API_KEY is not set; chat requests will fail until it is configured")
    return Services(
        store=store,
        client=client,
        embedder=embedder,
        corpus_cache=corpus_cache,
        vector_cache=vector_cache,
        pipeline=pipeline,
        interpreter=interpreter,
        indexer=indexer,
        generation_config=generation_config,
        summarizer=Summarizer(client, generation_config),
    )
