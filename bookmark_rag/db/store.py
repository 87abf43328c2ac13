"""
SQLAlchemy-backed store for bookmarks, their embeddings and chat history.

Implements the item source read by CorpusCache/VectorCache, the embedding
sink used by EmbeddingIndexer, and the ConversationStore protocol.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from bookmark_rag.orchestrator.memory import ConversationTurn
from bookmark_rag.rag.index import Item, StoredEmbedding

from .models import Bookmark, BookmarkEmbedding, ChatMessage

logger = logging.getLogger(__name__)


def _aware(ts: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=dt.timezone.utc)
    return ts


def encode_vector(vector: Sequence[float]) -> bytes:
    return np.asarray(vector, dtype="<f4").tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype="<f4").astype(np.float32)


def _to_item(row: Bookmark) -> Item:
    return Item(
        id=row.id,
        author_handle=row.author_handle,
        author_name=row.author_name or "",
        content=row.content,
        posted_at=_aware(row.posted_at),
        media_urls=list(row.media_urls or []),
        url=row.url or "",
        tweet_id=row.tweet_id or "",
        author_avatar=row.author_avatar,
        bookmarked_at=_aware(row.bookmarked_at),
        summary=row.summary,
    )


def _to_turn(row: ChatMessage) -> ConversationTurn:
    return ConversationTurn(
        id=row.id,
        role=row.role,
        text=row.content,
        grounding_item_ids=tuple(row.context_bookmark_ids or ()),
        created_at=_aware(row.created_at),
    )


@dataclass
class ImportResult:
    new_count: int = 0
    updated_count: int = 0


class SqlItemStore:
    """Synchronous store over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # --- items -----------------------------------------------------------

    def list_all_items(self, limit: int) -> List[Item]:
        """Newest posts first."""
        with self._session_factory() as session:
            rows = session.scalars(
                select(Bookmark).order_by(Bookmark.posted_at.desc(), Bookmark.id).limit(limit)
            ).all()
            return [_to_item(r) for r in rows]

    def item_count(self) -> int:
        with self._session_factory() as session:
            return session.scalar(select(func.count()).select_from(Bookmark)) or 0

    def upsert_items(self, items: Iterable[Item]) -> ImportResult:
        """
        Insert new items, refresh existing ones.

        An existing row is matched by tweet id when the item has one, else by
        id. Updates touch content, author name, avatar and media only.
        """
        result = ImportResult()
        now = dt.datetime.now(dt.timezone.utc)
        with self._session_factory.begin() as session:
            for item in items:
                existing: Optional[Bookmark] = None
                if item.tweet_id:
                    existing = session.scalar(
                        select(Bookmark).where(Bookmark.tweet_id == item.tweet_id)
                    )
                if existing is None:
                    existing = session.get(Bookmark, item.id)

                if existing is not None:
                    existing.content = item.content
                    existing.author_name = item.author_name
                    existing.author_avatar = item.author_avatar
                    existing.media_urls = list(item.media_urls)
                    result.updated_count += 1
                    continue

                session.add(
                    Bookmark(
                        id=item.id or uuid.uuid4().hex,
                        tweet_id=item.tweet_id or None,
                        author_handle=item.author_handle,
                        author_name=item.author_name,
                        author_avatar=item.author_avatar,
                        content=item.content,
                        posted_at=item.posted_at,
                        bookmarked_at=item.bookmarked_at or now,
                        url=item.url,
                        media_urls=list(item.media_urls),
                        summary=item.summary,
                    )
                )
                # later duplicates in the same batch must see this row
                session.flush()
                result.new_count += 1
        logger.info(
            "Import complete: %s new, %s updated", result.new_count, result.updated_count
        )
        return result

    # --- summaries -------------------------------------------------------

    def items_without_summary(self, limit: Optional[int] = None) -> List[Item]:
        """Newest first; blank content is never summarised."""
        with self._session_factory() as session:
            stmt = (
                select(Bookmark)
                .where(Bookmark.summary.is_(None), func.trim(Bookmark.content) != "")
                .order_by(Bookmark.posted_at.desc(), Bookmark.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [_to_item(r) for r in session.scalars(stmt).all()]

    def save_summary(self, item_id: str, summary: str) -> None:
        with self._session_factory.begin() as session:
            row = session.get(Bookmark, item_id)
            if row is None:
                logger.warning("Cannot save summary: bookmark %s not found", item_id)
                return
            row.summary = summary

    def summary_count(self) -> int:
        with self._session_factory() as session:
            return (
                session.scalar(
                    select(func.count()).select_from(Bookmark).where(Bookmark.summary.is_not(None))
                )
                or 0
            )

    # --- embeddings ------------------------------------------------------

    def list_embeddings(self) -> List[StoredEmbedding]:
        with self._session_factory() as session:
            rows = session.scalars(select(BookmarkEmbedding)).all()
            return [
                StoredEmbedding(
                    item_id=r.bookmark_id,
                    vector=decode_vector(r.embedding),
                    model_tag=r.embedding_model,
                )
                for r in rows
            ]

    def save_embedding(self, item_id: str, vector: Sequence[float], model_tag: str) -> None:
        self.save_embeddings([(item_id, vector)], model_tag)

    def save_embeddings(self, rows: Sequence[Tuple[str, Sequence[float]]], model_tag: str) -> None:
        """Insert or replace embeddings for ``rows`` of ``(item_id, vector)``."""
        now = dt.datetime.now(dt.timezone.utc)
        with self._session_factory.begin() as session:
            for item_id, vector in rows:
                blob = encode_vector(vector)
                existing = session.get(BookmarkEmbedding, item_id)
                if existing is None:
                    session.add(
                        BookmarkEmbedding(
                            bookmark_id=item_id,
                            embedding=blob,
                            embedding_model=model_tag,
                            created_at=now,
                        )
                    )
                else:
                    existing.embedding = blob
                    existing.embedding_model = model_tag
                    existing.created_at = now

    def items_without_embedding(self, model_tag: str) -> List[Item]:
        """Items with no embedding, or one produced by a different model."""
        with self._session_factory() as session:
            current = select(BookmarkEmbedding.bookmark_id).where(
                BookmarkEmbedding.embedding_model == model_tag
            )
            rows = session.scalars(
                select(Bookmark)
                .where(Bookmark.id.not_in(current))
                .order_by(Bookmark.posted_at.desc(), Bookmark.id)
            ).all()
            return [_to_item(r) for r in rows]

    def embedding_count(self, model_tag: Optional[str] = None) -> int:
        with self._session_factory() as session:
            stmt = select(func.count()).select_from(BookmarkEmbedding)
            if model_tag is not None:
                stmt = stmt.where(BookmarkEmbedding.embedding_model == model_tag)
            return session.scalar(stmt) or 0

    # --- conversation ----------------------------------------------------

    def append_turn(self, turn: ConversationTurn) -> None:
        with self._session_factory.begin() as session:
            session.add(
                ChatMessage(
                    id=turn.id,
                    role=turn.role,
                    content=turn.text,
                    context_bookmark_ids=list(turn.grounding_item_ids) or None,
                    created_at=turn.created_at or dt.datetime.now(dt.timezone.utc),
                )
            )

    def load_history(self, limit: int) -> List[ConversationTurn]:
        """Most recent turns first."""
        if limit <= 0:
            return []
        with self._session_factory() as session:
            rows = session.scalars(
                select(ChatMessage)
                .order_by(ChatMessage.created_at.desc(), ChatMessage.seq.desc())
                .limit(limit)
            ).all()
            return [_to_turn(r) for r in rows]

    def clear(self) -> None:
        with self._session_factory.begin() as session:
            session.execute(delete(ChatMessage))

    # Names used by the backing-store contract
    append_conversation_turn = append_turn
    load_conversation_history = load_history
    clear_conversation_history = clear
