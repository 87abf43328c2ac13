"""
Errors raised by the LLM client.

Every error carries a short ``user_message`` that is safe to show in a chat
window. The underlying SDK exception, if any, is kept as ``__cause__``.
"""

from __future__ import annotations

from typing import Optional


class LLMError(Exception):
    """Base class for LLM failures."""

    user_message = "The language model request failed."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.user_message)

    def __str__(self) -> str:
        if self.detail and self.detail != self.user_message:
            return f"{self.user_message} ({self.detail})"
        return self.user_message


class MissingCredentialError(LLMError):
    """No API key is configured; raised before any request is sent."""

    user_message = "No API key configured. Set LLM_API_KEY and try again."


class RateLimitedError(LLMError):
    user_message = "Rate limited — wait and retry."


class ServiceResponseError(LLMError):
    """Non-success status or a response body that could not be used."""

    user_message = "The language model returned an error."

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(detail)

    def __str__(self) -> str:
        # detail may hold the provider's raw body; it is logged, never shown
        if self.status_code is not None:
            return f"{self.user_message} HTTP {self.status_code}"
        return self.user_message


class TransportError(LLMError):
    user_message = "Network error while contacting the language model."
