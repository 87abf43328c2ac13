"""
Request and response models for the bookmark API.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request body for POST /api/chat and /api/chat/stream."""

    query: str = Field(..., min_length=1, description="User question")
    conversation_id: Optional[str] = Field(None, description="Session ID for conversation history")


class CitationOut(BaseModel):
    """Citation marker found in the answer."""

    item_id: str
    handle: str
    resolved: bool


class ItemSummary(BaseModel):
    """A bookmark used as grounding."""

    id: str
    author_handle: str
    author_name: str
    content: str
    posted_at: dt.datetime
    url: str = ""
    summary: Optional[str] = None


class ChatResponse(BaseModel):
    """Response for POST /api/chat."""

    answer: str
    # answer with markers for unknown items rendered as plain @handle
    display_answer: str = ""
    followups: List[str] = Field(default_factory=list)
    citations: List[CitationOut] = Field(default_factory=list)
    cited_item_ids: List[str] = Field(default_factory=list)
    items: List[ItemSummary] = Field(default_factory=list)
    search_params: Optional[Dict[str, Any]] = None


class SearchRequest(BaseModel):
    """Request body for POST /api/search."""

    query: str = Field(..., min_length=1)
    top_k: int = Field(30, ge=1, le=100)


class SearchHit(BaseModel):
    """Single search result."""

    item: ItemSummary
    score: float
    source: str


class SearchResponse(BaseModel):
    """Response for POST /api/search."""

    query: str
    search_params: Dict[str, Any]
    results: List[SearchHit] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    items_loaded: int = 0
    llm_configured: bool = False


class StatsResponse(BaseModel):
    """Response for GET /api/stats."""

    items: int = 0
    embeddings: int = 0
    embeddings_missing: int = 0
    embedding_model: str = ""
    summaries: int = 0
    active_conversations: int = 0


class TurnOut(BaseModel):
    id: str
    role: str
    text: str
    grounding_item_ids: List[str] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None


class HistoryResponse(BaseModel):
    """Response for GET /api/conversation (oldest first)."""

    conversation_id: str
    turns: List[TurnOut] = Field(default_factory=list)


class SuggestionsResponse(BaseModel):
    questions: List[str] = Field(default_factory=list)


class RebuildResponse(BaseModel):
    total: int
    embedded: int
    skipped: int


class SummariesResponse(BaseModel):
    total: int
    summarized: int
    failed: int
