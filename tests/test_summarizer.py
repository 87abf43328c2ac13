"""
Tests for per-bookmark summaries.
"""

from __future__ import annotations

import pytest

from bookmark_rag.generation import Summarizer
from bookmark_rag.generation.prompts import SUMMARY_SYSTEM_PROMPT
from bookmark_rag.llm.errors import MissingCredentialError, RateLimitedError


class MemorySink:
    def __init__(self, items):
        self.items = list(items)
        self.saved = {}

    def items_without_summary(self, limit=None):
        pending = [it for it in self.items if it.id not in self.saved]
        return pending if limit is None else pending[:limit]

    def save_summary(self, item_id, summary):
        self.saved[item_id] = summary


def test_summarize_sends_tweet_and_trims_reply(client_factory, item_factory):
    client = client_factory(parse_reply="  Packaging got simpler with uv.\n")
    item = item_factory("1", "  uv makes python packaging fast  ", handle="alice")

    assert Summarizer(client).summarize(item) == "Packaging got simpler with uv."
    call = client.complete_calls[0]
    assert call["prompt"] == "Summarize this tweet from @alice:\n\nuv makes python packaging fast"
    assert call["system_prompt"] == SUMMARY_SYSTEM_PROMPT
    assert call["max_tokens"] == 150
    assert call["model"] == "fake-parser"


def test_summarize_missing_saves_each_result(client_factory, item_factory):
    sink = MemorySink([item_factory("1", "a"), item_factory("2", "b"), item_factory("3", "c")])
    progress = []
    report = Summarizer(client_factory(parse_reply="Short.")).summarize_missing(
        sink, limit=2, on_progress=lambda done, total: progress.append((done, total))
    )

    assert (report.total, report.summarized, report.failed) == (2, 2, 0)
    assert sink.saved == {"1": "Short.", "2": "Short."}
    assert progress == [(1, 2), (2, 2)]


def test_one_failure_does_not_stop_the_batch(client_factory, item_factory):
    client = client_factory(parse_reply="Fine.")
    complete = client.complete

    def flaky(prompt, *args, **kwargs):
        if "broken" in prompt:
            raise RateLimitedError()
        return complete(prompt, *args, **kwargs)

    client.complete = flaky
    sink = MemorySink([item_factory("1", "broken one"), item_factory("2", "good one")])
    report = Summarizer(client).summarize_missing(sink)

    assert (report.total, report.summarized, report.failed) == (2, 1, 1)
    assert sink.saved == {"2": "Fine."}


def test_empty_reply_counts_as_failure(client_factory, item_factory):
    sink = MemorySink([item_factory("1", "text")])
    report = Summarizer(client_factory(parse_reply="   ")).summarize_missing(sink)
    assert report.failed == 1
    assert sink.saved == {}


def test_missing_key_stops_before_any_request(client_factory, item_factory):
    client = client_factory(api_key="")
    sink = MemorySink([item_factory("1", "text")])
    with pytest.raises(MissingCredentialError):
        Summarizer(client).summarize_missing(sink)
    assert client.complete_calls == []
