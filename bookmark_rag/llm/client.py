"""
LLM client for OpenAI-compatible chat APIs.

Wraps the openai SDK behind the small surface the answering pipeline needs:
a single-shot ``complete`` call, a closable chunk ``stream`` and the callback
flavoured ``complete_streaming``. SDK exceptions are translated into
``bookmark_rag.llm.errors`` so callers never see raw transport errors.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import openai
from dotenv import load_dotenv
from openai import OpenAI

from .errors import (
    LLMError,
    MissingCredentialError,
    RateLimitedError,
    ServiceResponseError,
    TransportError,
)

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


LLM_BASE_URL = os.getenv("LLM_BASE_URL")
LLM_API_KEY = os.getenv("LLM_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o")
# Cheaper model for turning questions into search parameters
LLM_PARSER_MODEL = os.getenv("LLM_PARSER_MODEL", "gpt-4o-mini")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))

logger = logging.getLogger(__name__)

Message = Dict[str, str]


def _wrap_error(exc: Exception) -> LLMError:
    """Translate an SDK exception into the pipeline's error taxonomy."""
    if isinstance(exc, LLMError):
        return exc
    if isinstance(exc, openai.RateLimitError):
        return RateLimitedError()
    if isinstance(exc, openai.APIStatusError):
        logger.warning("LLM API returned HTTP %s: %s", exc.status_code, exc.message)
        return ServiceResponseError(exc.message, status_code=exc.status_code)
    if isinstance(exc, openai.APITimeoutError):
        return TransportError("request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return TransportError("connection failed")
    if isinstance(exc, openai.APIError):
        logger.warning("LLM API error: %s", exc.message)
        return ServiceResponseError(exc.message)
    return TransportError(type(exc).__name__)


def _build_messages(messages: Sequence[Message], system_prompt: Optional[str]) -> List[Message]:
    out: List[Message] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    for m in messages:
        out.append({"role": m["role"], "content": m["content"]})
    return out


class ChatStream:
    """Iterator over text deltas of one streamed completion.

    ``close()`` releases the underlying HTTP response; it is safe to call more
    than once and is called automatically when iteration finishes.
    """

    def __init__(self, response):
        self._response = response
        self._closed = False

    def __iter__(self) -> Iterator[str]:
        try:
            for chunk in self._response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                text = getattr(delta, "content", None)
                if text:
                    yield text
        except LLMError:
            raise
        except Exception as e:
            if self._closed:
                return
            raise _wrap_error(e) from e
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._response, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "ChatStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChatClient:
    """OpenAI-compatible chat client (OpenAI, Anthropic compat endpoint, local servers)."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        parser_model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.model_name = model_name or LLM_MODEL
        self.parser_model_name = parser_model_name or LLM_PARSER_MODEL
        self.base_url = base_url or LLM_BASE_URL
        self.timeout = timeout if timeout is not None else LLM_TIMEOUT
        # Backoff on 429/5xx is delegated to the SDK
        self.max_retries = max_retries if max_retries is not None else LLM_MAX_RETRIES
        self._api_key = api_key if api_key is not None else (LLM_API_KEY or "")
        self._client: Optional[OpenAI] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key.strip())

    def _require_client(self) -> OpenAI:
        if not self.has_credentials:
            raise MissingCredentialError()
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._client

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1024,
        *,
        model: Optional[str] = None,
        temperature: float = 0.0,
    ) -> str:
        """Send a single user prompt and return the full reply text."""
        client = self._require_client()
        try:
            response = client.chat.completions.create(
                model=model or self.model_name,
                messages=_build_messages([{"role": "user", "content": prompt}], system_prompt),
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise _wrap_error(e) from e

        if not response.choices:
            raise ServiceResponseError("response contained no choices")
        text = response.choices[0].message.content or ""
        if not text.strip():
            logger.warning(
                "Empty content in completion (finish_reason=%s)",
                getattr(response.choices[0], "finish_reason", "?"),
            )
        return text

    def stream(
        self,
        messages: Sequence[Message],
        system_prompt: Optional[str] = None,
        max_tokens: int = 1500,
        *,
        model: Optional[str] = None,
        temperature: float = 0.3,
    ) -> ChatStream:
        """Start a streamed completion over a conversation."""
        client = self._require_client()
        try:
            response = client.chat.completions.create(
                model=model or self.model_name,
                messages=_build_messages(messages, system_prompt),
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
        except Exception as e:
            raise _wrap_error(e) from e
        return ChatStream(response)

    def complete_streaming(
        self,
        messages: Sequence[Message],
        system_prompt: Optional[str],
        max_tokens: int,
        on_chunk: Callable[[str], None],
    ) -> str:
        """Stream a conversation, calling ``on_chunk`` per delta; return the final text."""
        parts: List[str] = []
        with self.stream(messages, system_prompt, max_tokens) as chunks:
            for text in chunks:
                parts.append(text)
                on_chunk(text)
        return "".join(parts)


def create_client(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> ChatClient:
    """Create an OpenAI-compatible client from arguments or environment."""
    return ChatClient(model_name=model_name, api_key=api_key, base_url=base_url)
