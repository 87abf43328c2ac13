"""
Tests for the OpenAI-compatible client: error translation, completion, streaming.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from bookmark_rag.llm import (
    ChatClient,
    MissingCredentialError,
    RateLimitedError,
    ServiceResponseError,
    TransportError,
)

REQUEST = httpx.Request("POST", "https://llm.example/v1/chat/completions")


def _status_error(cls, status: int, message: str = "boom"):
    return cls(message, response=httpx.Response(status, request=REQUEST), body=None)


def _client_with(create) -> ChatClient:
    client = ChatClient(model_name="test-model", api_key="sk-test")
    sdk = MagicMock()
    sdk.chat.completions.create = create
    client._client = sdk
    return client


def _completion(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")]
    )


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


# --- Credentials ---


def test_missing_key_raises_before_request():
    client = ChatClient(api_key="")
    assert not client.has_credentials
    with pytest.raises(MissingCredentialError):
        client.complete("hi")
    with pytest.raises(MissingCredentialError):
        client.stream([{"role": "user", "content": "hi"}])
    assert client._client is None


# --- Completion ---


def test_complete_returns_text_and_sends_system_prompt():
    create = MagicMock(return_value=_completion("hello"))
    client = _client_with(create)
    assert client.complete("question", system_prompt="be brief", max_tokens=500) == "hello"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["max_tokens"] == 500
    assert kwargs["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "question"},
    ]


def test_complete_with_parser_model_override():
    create = MagicMock(return_value=_completion("{}"))
    _client_with(create).complete("q", model="small-model")
    assert create.call_args.kwargs["model"] == "small-model"


@pytest.mark.parametrize(
    "exc,expected",
    [
        (_status_error(openai.RateLimitError, 429), RateLimitedError),
        (_status_error(openai.InternalServerError, 500), ServiceResponseError),
        (openai.APIConnectionError(request=REQUEST), TransportError),
        (openai.APITimeoutError(request=REQUEST), TransportError),
    ],
)
def test_sdk_errors_are_wrapped(exc, expected):
    client = _client_with(MagicMock(side_effect=exc))
    with pytest.raises(expected) as info:
        client.complete("q")
    assert info.value.__cause__ is exc


def test_status_code_is_kept():
    client = _client_with(MagicMock(side_effect=_status_error(openai.BadRequestError, 400, "bad")))
    with pytest.raises(ServiceResponseError) as info:
        client.complete("q")
    assert info.value.status_code == 400
    assert "HTTP 400" in str(info.value)


def test_provider_error_body_is_not_shown_to_users():
    body = "invalid_api_key: sk-live-1234 is not valid for org-secret"
    client = _client_with(MagicMock(side_effect=_status_error(openai.AuthenticationError, 401, body)))
    with pytest.raises(ServiceResponseError) as info:
        client.complete("q")
    assert str(info.value) == "The language model returned an error. HTTP 401"
    assert "sk-live" not in str(info.value)
    # kept for logs
    assert info.value.detail == body


def test_empty_choices_is_service_error():
    client = _client_with(MagicMock(return_value=SimpleNamespace(choices=[])))
    with pytest.raises(ServiceResponseError):
        client.complete("q")


# --- Streaming ---


def test_stream_yields_text_deltas():
    response = MagicMock()
    response.__iter__.return_value = iter([_chunk("Hel"), _chunk(None), _chunk("lo")])
    create = MagicMock(return_value=response)
    client = _client_with(create)

    with client.stream([{"role": "user", "content": "hi"}], system_prompt="sys") as chunks:
        assert list(chunks) == ["Hel", "lo"]
    assert create.call_args.kwargs["stream"] is True
    response.close.assert_called_once()


def test_stream_error_mid_way_is_wrapped():
    def gen():
        yield _chunk("partial")
        raise openai.APIConnectionError(request=REQUEST)

    response = MagicMock()
    response.__iter__.return_value = gen()
    client = _client_with(MagicMock(return_value=response))

    received = []
    with pytest.raises(TransportError):
        for text in client.stream([{"role": "user", "content": "hi"}]):
            received.append(text)
    assert received == ["partial"]


def test_complete_streaming_calls_back_per_chunk():
    response = MagicMock()
    response.__iter__.return_value = iter([_chunk("a"), _chunk("b")])
    client = _client_with(MagicMock(return_value=response))

    seen = []
    text = client.complete_streaming([{"role": "user", "content": "hi"}], "sys", 100, seen.append)
    assert text == "ab"
    assert seen == ["a", "b"]
