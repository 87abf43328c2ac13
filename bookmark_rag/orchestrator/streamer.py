"""
Streamed question answering over the bookmark archive.

One question runs parsing -> searching -> generating -> done (or error).
The LLM stream is read on a worker thread into a bounded queue; the caller's
generator drains it and releases text in batches (see ChunkBatcher).

Closing the event generator early cancels the request: the LLM stream is
closed, the worker is stopped and nothing is written to the conversation
store. Turns are persisted only when the stream finishes naturally.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generator, Iterator, List, Optional, Sequence, Tuple

from bookmark_rag.generation import (
    SUGGESTED_QUESTIONS,
    AnswerGenerator,
    ChunkBatcher,
    Citation,
    GenerationConfig,
    finish_answer,
)
from bookmark_rag.llm.client import ChatClient, ChatStream
from bookmark_rag.llm.errors import LLMError, MissingCredentialError, TransportError
from bookmark_rag.rag.index import Item
from bookmark_rag.rag.query_interpreter import QueryInterpreter, SearchParams
from bookmark_rag.rag.retrieval import RetrievalPipeline

from .memory import (
    ASSISTANT,
    USER,
    ConversationStore,
    ConversationTurn,
    history_to_messages,
)

logger = logging.getLogger(__name__)

# How often a stalled stream checks its cancel event
CANCEL_POLL_SECONDS = 0.1


class StreamState(str, Enum):
    PARSING = "parsing"
    SEARCHING = "searching"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


class SearchFailedError(Exception):
    """Retrieval could not run (store or cache failure)."""


@dataclass
class AnswerResult:
    """Final outcome of one answered question."""

    question: str
    answer: str
    followups: List[str] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)
    search_params: Optional[SearchParams] = None
    citations: List[Citation] = field(default_factory=list)


@dataclass
class StreamEvent:
    """
    One event of an answer stream.

    kind is ``state`` (with ``state``), ``text`` (with ``text``), ``done``
    (with ``result``) or ``error`` (with ``error``).
    """

    kind: str
    state: Optional[StreamState] = None
    text: str = ""
    result: Optional[AnswerResult] = None
    error: Optional[Exception] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""


def _state(state: StreamState) -> StreamEvent:
    return StreamEvent(kind="state", state=state)


class AnswerStreamer:
    """Parse, retrieve and stream a grounded answer for one conversation."""

    def __init__(
        self,
        client: ChatClient,
        interpreter: QueryInterpreter,
        pipeline: RetrievalPipeline,
        store: ConversationStore,
        config: Optional[GenerationConfig] = None,
        generator: Optional[AnswerGenerator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.interpreter = interpreter
        self.pipeline = pipeline
        self.store = store
        self.config = config or GenerationConfig()
        self.generator = generator or AnswerGenerator(client, self.config)
        self._clock = clock
        # One answer at a time per conversation
        self._lock = threading.Lock()
        self.state: Optional[StreamState] = None

    @staticmethod
    def suggested_questions() -> List[str]:
        return list(SUGGESTED_QUESTIONS)

    def stream(
        self,
        question: str,
        history: Optional[Sequence[ConversationTurn]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[StreamEvent]:
        """
        Yield events for ``question``.

        ``history`` is newest-first like ``ConversationStore.load_history``;
        when omitted the last ``config.history_turns`` turns are loaded.

        Setting ``cancel`` from another thread ends the stream within
        ``CANCEL_POLL_SECONDS`` even while the LLM is silent: the network
        stream is closed and nothing is persisted.
        """
        with self._lock:
            yield from self._run(question, history, cancel)

    def ask(
        self,
        question: str,
        history: Optional[Sequence[ConversationTurn]] = None,
    ) -> AnswerResult:
        """Blocking variant of ``stream``; raises the terminal error."""
        result: Optional[AnswerResult] = None
        for event in self.stream(question, history):
            if event.kind == "error" and event.error is not None:
                raise event.error
            if event.kind == "done":
                result = event.result
        if result is None:
            raise TransportError("stream ended without a result")
        return result

    def _enter(self, state: StreamState) -> StreamEvent:
        self.state = state
        return _state(state)

    def _fail(self, error: Exception) -> Iterator[StreamEvent]:
        yield self._enter(StreamState.ERROR)
        yield StreamEvent(kind="error", state=StreamState.ERROR, error=error)

    def _run(
        self,
        question: str,
        history: Optional[Sequence[ConversationTurn]],
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[StreamEvent]:
        yield self._enter(StreamState.PARSING)
        # No request is attempted without a key
        if not self.client.has_credentials:
            yield from self._fail(MissingCredentialError())
            return

        params = self.interpreter.parse(question)
        logger.debug("Search params for %r: %s", question, params.to_dict())

        yield self._enter(StreamState.SEARCHING)
        try:
            items = self.pipeline.search(params)
        except Exception as e:
            logger.exception("Retrieval failed")
            yield from self._fail(SearchFailedError(f"Search failed: {type(e).__name__}"))
            return

        if history is None:
            history = self.store.load_history(self.config.history_turns)
        messages = history_to_messages(history)
        if cancel is not None and cancel.is_set():
            return

        yield self._enter(StreamState.GENERATING)
        try:
            chat_stream = self.generator.open_stream(question, items, messages)
        except LLMError as e:
            logger.warning("Answer request failed: %s", e)
            yield from self._fail(e)
            return

        try:
            raw = yield from self._drain(chat_stream, cancel)
        except LLMError as e:
            # Text already released stays with the caller
            logger.warning("Answer stream failed: %s", e)
            yield from self._fail(e)
            return
        if raw is None:
            logger.info("Answer cancelled for %r", question)
            return

        finished = finish_answer(raw, items, self.config)
        self._persist(question, finished.answer, [it.id for it in items])

        result = AnswerResult(
            question=question,
            answer=finished.answer,
            followups=finished.followups,
            items=list(items),
            search_params=params,
            citations=finished.citations,
        )
        yield self._enter(StreamState.DONE)
        yield StreamEvent(kind="done", state=StreamState.DONE, result=result)

    def _drain(
        self,
        chat_stream: ChatStream,
        cancel: Optional[threading.Event] = None,
    ) -> Generator[StreamEvent, None, Optional[str]]:
        """
        Release batched text events; return the full text once the stream ends,
        or None when ``cancel`` was set first.
        """
        q: "queue.Queue[Tuple[str, object]]" = queue.Queue(maxsize=self.config.chunk_queue_size)
        stop = threading.Event()

        def put(message: Tuple[str, object]) -> None:
            while not stop.is_set():
                try:
                    q.put(message, timeout=0.1)
                    return
                except queue.Full:
                    continue

        def reader() -> None:
            try:
                for text in chat_stream:
                    if stop.is_set():
                        return
                    put(("chunk", text))
                put(("end", None))
            except LLMError as e:
                put(("error", e))
            except Exception as e:
                put(("error", TransportError(type(e).__name__)))

        worker = threading.Thread(target=reader, name="answer-stream", daemon=True)
        batcher = ChunkBatcher(self.config.flush_interval_seconds, clock=self._clock)
        parts: List[str] = []
        worker.start()
        try:
            while True:
                if cancel is not None and cancel.is_set():
                    return None
                due = batcher.due_in()
                timeout = due
                if cancel is not None:
                    timeout = CANCEL_POLL_SECONDS if due is None else min(due, CANCEL_POLL_SECONDS)
                try:
                    kind, payload = q.get(timeout=timeout) if timeout is not None else q.get()
                except queue.Empty:
                    # a poll wakeup only flushes once the batch is due
                    if batcher.pending and (timeout == due or batcher.should_flush()):
                        yield StreamEvent(kind="text", text=batcher.flush())
                    continue
                if kind == "chunk":
                    text = str(payload)
                    parts.append(text)
                    batch = batcher.add(text)
                    if batch:
                        yield StreamEvent(kind="text", text=batch)
                    continue
                if batcher.pending:
                    yield StreamEvent(kind="text", text=batcher.flush())
                if kind == "error" and isinstance(payload, LLMError):
                    raise payload
                return "".join(parts)
        finally:
            stop.set()
            chat_stream.close()
            worker.join(timeout=1.0)

    def _persist(self, question: str, answer: str, item_ids: List[str]) -> None:
        self.store.append_turn(ConversationTurn.create(USER, question))
        self.store.append_turn(ConversationTurn.create(ASSISTANT, answer, item_ids))

