"""
LLM client module for OpenAI-compatible chat APIs.
"""

from .client import ChatClient, ChatStream, create_client
from .errors import (
    LLMError,
    MissingCredentialError,
    RateLimitedError,
    ServiceResponseError,
    TransportError,
)

__all__ = [
    "ChatClient",
    "ChatStream",
    "create_client",
    "LLMError",
    "MissingCredentialError",
    "RateLimitedError",
    "ServiceResponseError",
    "TransportError",
]
