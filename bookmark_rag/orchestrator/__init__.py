"""
Orchestrator: question parsing, retrieval and streamed answer flow, plus conversation memory.
"""

from .memory import (
    ConversationStore,
    ConversationTurn,
    InMemoryConversationStore,
    history_to_messages,
)
from .streamer import AnswerResult, AnswerStreamer, SearchFailedError, StreamEvent, StreamState

__all__ = [
    "AnswerResult",
    "AnswerStreamer",
    "ConversationStore",
    "ConversationTurn",
    "history_to_messages",
    "InMemoryConversationStore",
    "SearchFailedError",
    "StreamEvent",
    "StreamState",
]
