"""
Tests for the streamed answer flow: states, persistence, errors, cancellation.
"""

from __future__ import annotations

import threading
import time

import pytest

from bookmark_rag.llm.errors import MissingCredentialError, RateLimitedError, ServiceResponseError
from bookmark_rag.orchestrator import (
    AnswerStreamer,
    ConversationTurn,
    InMemoryConversationStore,
    SearchFailedError,
    StreamState,
    history_to_messages,
)
from bookmark_rag.rag import CorpusCache, QueryInterpreter, RetrievalPipeline, VectorCache

PYTHON_PARAMS = '{"keywords": ["python"], "dateRange": null, "authors": null, "topics": null}'
CHUNKS = [
    "Python ",
    "is [ITEM:p1]@alice[/ITEM] great.",
    "\n---FOLLOWUPS---\n- More?",
]


@pytest.fixture
def items(item_factory):
    return [
        item_factory("p1", "python packaging is great", handle="alice"),
        item_factory("c1", "slow cooking recipe", handle="bob"),
    ]


@pytest.fixture
def make_streamer(store_factory, items):
    def build(client, memory=None, source=None):
        source = source or store_factory(items)
        pipeline = RetrievalPipeline(
            corpus_cache=CorpusCache(source),
            vector_cache=VectorCache(source, "fake-embedder"),
        )
        return AnswerStreamer(
            client=client,
            interpreter=QueryInterpreter(client),
            pipeline=pipeline,
            store=memory if memory is not None else InMemoryConversationStore(),
        )

    return build


def _states(events):
    return [e.state for e in events if e.kind == "state"]


def _text(events):
    return "".join(e.text for e in events if e.kind == "text")


# --- Happy path ---


def test_states_and_result(client_factory, make_streamer):
    client = client_factory(parse_reply=PYTHON_PARAMS, chunks=CHUNKS)
    streamer = make_streamer(client)
    events = list(streamer.stream("What about python?"))

    assert _states(events) == [
        StreamState.PARSING,
        StreamState.SEARCHING,
        StreamState.GENERATING,
        StreamState.DONE,
    ]
    assert _text(events) == "".join(CHUNKS)
    result = events[-1].result
    assert events[-1].kind == "done"
    assert result.answer == "Python is [ITEM:p1]@alice[/ITEM] great."
    assert result.followups == ["More?"]
    assert [it.id for it in result.items] == ["p1"]
    assert result.search_params.keywords == ["python"]
    assert [(c.item_id, c.resolved) for c in result.citations] == [("p1", True)]
    assert streamer.state == StreamState.DONE

    call = client.stream_calls[0]
    assert call["max_tokens"] == 1500
    assert "ID:p1 @alice" in call["system_prompt"]
    assert call["messages"][-1] == {"role": "user", "content": "What about python?"}


def test_turns_persisted_on_completion(client_factory, make_streamer):
    memory = InMemoryConversationStore()
    client = client_factory(parse_reply=PYTHON_PARAMS, chunks=CHUNKS)
    make_streamer(client, memory).ask("What about python?")

    turns = memory.load_history(10)
    assert [t.role for t in turns] == ["assistant", "user"]
    assert turns[0].text == "Python is [ITEM:p1]@alice[/ITEM] great."
    assert turns[0].grounding_item_ids == ("p1",)
    assert turns[1].text == "What about python?"
    assert turns[1].grounding_item_ids == ()


def test_history_sent_as_chat_messages(client_factory, make_streamer):
    client = client_factory(parse_reply=PYTHON_PARAMS, chunks=["First answer."])
    streamer = make_streamer(client)
    streamer.ask("first?")
    client.chunks = ["Second answer."]
    streamer.ask("second?")

    assert client.stream_calls[1]["messages"] == [
        {"role": "user", "content": "first?"},
        {"role": "assistant", "content": "First answer."},
        {"role": "user", "content": "second?"},
    ]


def test_unparseable_question_still_answers(client_factory, make_streamer):
    client = client_factory(parse_reply="not json at all", chunks=["ok"])
    result = make_streamer(client).ask("python packaging")
    assert result.search_params.keywords == ["python", "packaging"]
    assert result.answer == "ok"


def test_suggested_questions():
    questions = AnswerStreamer.suggested_questions()
    assert len(questions) == 4
    assert "What are people saying about AI?" in questions


# --- Errors ---


def test_missing_credential_fails_before_any_call(client_factory, make_streamer):
    client = client_factory(api_key="")
    streamer = make_streamer(client)
    events = list(streamer.stream("anything"))

    assert _states(events) == [StreamState.PARSING, StreamState.ERROR]
    assert events[-1].kind == "error"
    assert isinstance(events[-1].error, MissingCredentialError)
    assert "No API key configured" in events[-1].message
    assert client.complete_calls == []
    assert client.stream_calls == []
    with pytest.raises(MissingCredentialError):
        streamer.ask("anything")


def test_stream_error_keeps_partial_text(client_factory, make_streamer):
    """Text already delivered stays delivered; nothing is persisted."""
    memory = InMemoryConversationStore()
    client = client_factory(
        parse_reply=PYTHON_PARAMS,
        chunks=["Partial answer"],
        stream_error=RateLimitedError(),
    )
    streamer = make_streamer(client, memory)
    events = list(streamer.stream("python?"))

    assert _text(events) == "Partial answer"
    kinds = [e.kind for e in events]
    assert kinds.index("text") < kinds.index("error")
    assert events[-1].message == "Rate limited — wait and retry."
    assert streamer.state == StreamState.ERROR
    assert memory.load_history(10) == []
    assert client.streams[0].closed


def test_error_opening_stream(client_factory, make_streamer):
    client = client_factory(
        parse_reply=PYTHON_PARAMS,
        open_error=ServiceResponseError("overloaded", status_code=503),
    )
    events = list(make_streamer(client).stream("python?"))
    assert _states(events)[-1] == StreamState.ERROR
    assert events[-1].error.status_code == 503
    assert "HTTP 503" in events[-1].message


def test_retrieval_failure_is_terminal(client_factory, make_streamer, store_factory):
    class BrokenStore(store_factory):
        def list_all_items(self, limit):
            raise RuntimeError("database is locked")

    client = client_factory(parse_reply=PYTHON_PARAMS)
    streamer = make_streamer(client, source=BrokenStore())
    events = list(streamer.stream("python?"))
    assert _states(events) == [StreamState.PARSING, StreamState.SEARCHING, StreamState.ERROR]
    assert isinstance(events[-1].error, SearchFailedError)
    assert client.stream_calls == []


# --- Cancellation ---


def test_closing_stream_cancels_and_persists_nothing(client_factory, make_streamer):
    memory = InMemoryConversationStore()
    client = client_factory(parse_reply=PYTHON_PARAMS, chunks=["Hello", " world"], block_after=1)
    streamer = make_streamer(client, memory)

    events = streamer.stream("python?")
    for event in events:
        if event.kind == "text":
            assert event.text == "Hello"
            break
    events.close()

    assert client.streams[0].closed
    assert memory.load_history(10) == []

    # the conversation is usable again afterwards
    client.block_after = None
    result = streamer.ask("python?")
    assert result.answer == "Hello world"
    assert len(memory.load_history(10)) == 2


def test_cancel_event_releases_a_stalled_stream(client_factory, make_streamer):
    memory = InMemoryConversationStore()
    client = client_factory(parse_reply=PYTHON_PARAMS, chunks=["Hello", " world"], block_after=1)
    streamer = make_streamer(client, memory)
    cancel = threading.Event()

    events = streamer.stream("python?", cancel=cancel)
    for event in events:
        if event.kind == "text":
            break
    # the LLM is now silent; the caller gives up without closing the generator
    cancel.set()
    started = time.monotonic()
    rest = list(events)

    assert time.monotonic() - started < 2
    assert [e.kind for e in rest if e.kind in ("done", "error")] == []
    assert client.streams[0].closed
    assert memory.load_history(10) == []

    client.block_after = None
    assert streamer.ask("python?").answer == "Hello world"


# --- Memory ---


def test_in_memory_store_bounds_and_orders():
    memory = InMemoryConversationStore(max_turns=3)
    for i in range(5):
        memory.append_turn(ConversationTurn.create("user", f"q{i}"))
    assert [t.text for t in memory.load_history(10)] == ["q4", "q3", "q2"]
    assert [t.text for t in memory.load_history(2)] == ["q4", "q3"]
    assert memory.load_history(0) == []
    memory.clear()
    assert memory.load_history(10) == []


def test_history_to_messages_is_chronological():
    turns = [
        ConversationTurn.create("assistant", "a1", ["x"]),
        ConversationTurn.create("user", "q1"),
        ConversationTurn.create("system", "ignored"),
    ]
    assert history_to_messages(turns) == [
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "a1"},
    ]
