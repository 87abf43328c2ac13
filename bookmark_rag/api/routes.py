"""
API routes: chat, streamed chat, search, conversation history, embeddings, summaries, health, stats.
"""

from __future__ import annotations

import asyncio
import json
import logging
import queue
import threading
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from bookmark_rag.generation import SUGGESTED_QUESTIONS, cited_item_ids, render_unresolved
from bookmark_rag.llm import LLMError, MissingCredentialError
from bookmark_rag.orchestrator import (
    AnswerResult,
    AnswerStreamer,
    SearchFailedError,
    StreamEvent,
    StreamState,
)
from bookmark_rag.rag.index import Item

from .deps import DEFAULT_CONVERSATION, Services
from .models import (
    ChatRequest,
    ChatResponse,
    CitationOut,
    HealthResponse,
    HistoryResponse,
    ItemSummary,
    RebuildResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatsResponse,
    SummariesResponse,
    SuggestionsResponse,
    TurnOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

# How often a waiting stream checks whether the client went away
DISCONNECT_POLL_SECONDS = 0.5


def _sse_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


def _get_services(request: Request) -> Optional[Services]:
    return getattr(request.app.state, "services", None)


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": "Service unavailable: services not initialized."},
    )


def _error_response(error: Exception) -> JSONResponse:
    if isinstance(error, (MissingCredentialError, SearchFailedError)):
        status = 503
    elif isinstance(error, LLMError):
        status = 502
    else:
        status = 500
    return JSONResponse(status_code=status, content={"detail": str(error)})


def _item_summary(item: Item) -> ItemSummary:
    return ItemSummary(
        id=item.id,
        author_handle=item.author_handle,
        author_name=item.author_name,
        content=item.content,
        posted_at=item.posted_at,
        url=item.url,
        summary=item.summary,
    )


def _chat_response(result: AnswerResult) -> ChatResponse:
    return ChatResponse(
        answer=result.answer,
        display_answer=render_unresolved(result.answer, result.items),
        followups=result.followups,
        citations=[
            CitationOut(item_id=c.item_id, handle=c.handle, resolved=c.resolved)
            for c in result.citations
        ],
        cited_item_ids=cited_item_ids(result.citations),
        items=[_item_summary(it) for it in result.items],
        search_params=result.search_params.to_dict() if result.search_params else None,
    )


def _format_event(event: StreamEvent) -> Optional[str]:
    if event.kind == "state" and event.state is not None:
        return _sse_event("state", json.dumps({"state": event.state.value}))
    if event.kind == "text":
        return _sse_event("token", json.dumps({"token": event.text}))
    if event.kind == "done" and event.result is not None:
        payload = _chat_response(event.result).model_dump(mode="json")
        return _sse_event("done", json.dumps(payload))
    if event.kind == "error":
        return _sse_event("error", json.dumps({"detail": event.message}))
    return None


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse | JSONResponse:
    """Health check."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    items = await asyncio.to_thread(services.store.item_count)
    return HealthResponse(
        status="ok",
        items_loaded=items,
        llm_configured=services.client.has_credentials,
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(request: Request) -> StatsResponse | JSONResponse:
    """Archive and index statistics."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    model_tag = services.embedder.model_tag

    def collect() -> StatsResponse:
        return StatsResponse(
            items=services.store.item_count(),
            embeddings=services.store.embedding_count(model_tag),
            embeddings_missing=services.indexer.missing_count(),
            embedding_model=model_tag,
            summaries=services.store.summary_count(),
            active_conversations=len(services.streamers),
        )

    return await asyncio.to_thread(collect)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions() -> SuggestionsResponse:
    """Starter questions for an empty conversation."""
    return SuggestionsResponse(questions=list(SUGGESTED_QUESTIONS))


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest) -> ChatResponse | JSONResponse:
    """Answer a question over the bookmarks (blocking, full answer at once)."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    streamer = services.streamer_for(body.conversation_id)
    try:
        result = await asyncio.to_thread(streamer.ask, body.query)
    except (LLMError, SearchFailedError) as e:
        return _error_response(e)
    return _chat_response(result)


async def _stream_chat(request: Request, streamer: AnswerStreamer, query: str):
    out: queue.Queue = queue.Queue()
    cancel = threading.Event()

    def run_stream() -> None:
        events = streamer.stream(query, cancel=cancel)
        try:
            for event in events:
                if cancel.is_set():
                    break
                out.put(event)
        except Exception:
            logger.exception("Answer stream crashed")
            out.put(
                StreamEvent(
                    kind="error",
                    state=StreamState.ERROR,
                    error=RuntimeError("Internal error while answering."),
                )
            )
        finally:
            # Closing early cancels generation; nothing is persisted
            events.close()
            out.put(None)

    thread = threading.Thread(target=run_stream, name="chat-stream", daemon=True)
    thread.start()
    try:
        while True:
            try:
                event = await asyncio.to_thread(out.get, True, DISCONNECT_POLL_SECONDS)
            except queue.Empty:
                if await request.is_disconnected():
                    logger.info("Client disconnected, cancelling answer")
                    return
                continue
            if event is None:
                return
            formatted = _format_event(event)
            if formatted is not None:
                yield formatted
    finally:
        cancel.set()


@router.post("/chat/stream", response_model=None)
async def chat_stream(request: Request, body: ChatRequest) -> StreamingResponse | JSONResponse:
    """Stream state changes and answer tokens via SSE; the final event carries the full result."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    streamer = services.streamer_for(body.conversation_id)
    return StreamingResponse(
        _stream_chat(request, streamer, body.query),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(request: Request, body: SearchRequest) -> SearchResponse | JSONResponse:
    """Direct search (no answer generation)."""
    services = _get_services(request)
    if services is None:
        return _unavailable()

    def run() -> SearchResponse:
        params = services.interpreter.parse(body.query)
        results = services.pipeline.retrieve(params)[: body.top_k]
        return SearchResponse(
            query=body.query,
            search_params=params.to_dict(),
            results=[
                SearchHit(item=_item_summary(r.item), score=round(r.score, 4), source=r.source)
                for r in results
            ],
        )

    return await asyncio.to_thread(run)


@router.get("/conversation", response_model=HistoryResponse)
async def get_conversation(
    request: Request,
    conversation_id: str = DEFAULT_CONVERSATION,
    limit: int = 50,
) -> HistoryResponse | JSONResponse:
    """Conversation history, oldest first."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    streamer = services.existing_streamer(conversation_id)
    if streamer is None and conversation_id != DEFAULT_CONVERSATION:
        return HistoryResponse(conversation_id=conversation_id)
    store = streamer.store if streamer is not None else services.store
    turns = await asyncio.to_thread(store.load_history, limit)
    return HistoryResponse(
        conversation_id=conversation_id,
        turns=[
            TurnOut(
                id=t.id,
                role=t.role,
                text=t.text,
                grounding_item_ids=list(t.grounding_item_ids),
                created_at=t.created_at,
            )
            for t in reversed(turns)
        ],
    )


@router.delete("/conversation")
async def clear_conversation(request: Request, conversation_id: str = DEFAULT_CONVERSATION) -> dict:
    """Clear conversation history for the given conversation_id."""
    services = _get_services(request)
    if services is None:
        return {"ok": False, "conversation_id": conversation_id}
    streamer = services.existing_streamer(conversation_id)
    if streamer is not None:
        await asyncio.to_thread(streamer.store.clear)
    elif conversation_id == DEFAULT_CONVERSATION:
        await asyncio.to_thread(services.store.clear)
    return {"ok": True, "conversation_id": conversation_id}


@router.post("/embeddings/rebuild", response_model=RebuildResponse)
async def rebuild_embeddings(request: Request) -> RebuildResponse | JSONResponse:
    """Embed every bookmark that has no vector for the current model."""
    services = _get_services(request)
    if services is None:
        return _unavailable()
    if not await asyncio.to_thread(lambda: services.embedder.is_available):
        return JSONResponse(
            status_code=503,
            content={"detail": f"Embedding model {services.embedder.model_tag} is unavailable."},
        )
    report = await asyncio.to_thread(services.indexer.build_missing)
    return RebuildResponse(total=report.total, embedded=report.embedded, skipped=report.skipped)


@router.post("/summaries/rebuild", response_model=SummariesResponse)
async def rebuild_summaries(request: Request, limit: Optional[int] = None) -> SummariesResponse | JSONResponse:
    """Summarise bookmarks that have no summary yet (at most ``limit``)."""
    services = _get_services(request)
    if services is None or services.summarizer is None:
        return _unavailable()
    try:
        report = await asyncio.to_thread(services.summarizer.summarize_missing, services.store, limit)
    except LLMError as e:
        return _error_response(e)
    return SummariesResponse(total=report.total, summarized=report.summarized, failed=report.failed)
