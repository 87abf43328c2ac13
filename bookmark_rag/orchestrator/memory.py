"""
Conversation memory: persisted chat turns used as history for follow-ups.
"""

from __future__ import annotations

import datetime as dt
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    """Single message in the conversation."""

    id: str
    role: str
    text: str
    grounding_item_ids: Tuple[str, ...] = ()
    created_at: Optional[dt.datetime] = None

    @classmethod
    def create(
        cls,
        role: str,
        text: str,
        grounding_item_ids: Optional[Sequence[str]] = None,
    ) -> "ConversationTurn":
        return cls(
            id=uuid.uuid4().hex,
            role=role,
            text=text,
            grounding_item_ids=tuple(grounding_item_ids or ()),
            created_at=dt.datetime.now(dt.timezone.utc),
        )


class ConversationStore(Protocol):
    def append_turn(self, turn: ConversationTurn) -> None:
        ...

    def load_history(self, limit: int) -> List[ConversationTurn]:
        """Most recent turns first."""
        ...

    def clear(self) -> None:
        ...


class InMemoryConversationStore:
    """In-memory list of turns; keeps at most ``max_turns``."""

    def __init__(self, max_turns: int = 200):
        self._turns: List[ConversationTurn] = []
        self._lock = threading.Lock()
        self.max_turns = max_turns

    def append_turn(self, turn: ConversationTurn) -> None:
        with self._lock:
            self._turns.append(turn)
            if len(self._turns) > self.max_turns:
                self._turns = self._turns[-self.max_turns :]

    def load_history(self, limit: int) -> List[ConversationTurn]:
        if limit <= 0:
            return []
        with self._lock:
            return list(reversed(self._turns[-limit:]))

    def clear(self) -> None:
        with self._lock:
            self._turns.clear()


def history_to_messages(turns_newest_first: Sequence[ConversationTurn]) -> List[Dict[str, str]]:
    """Chat messages in chronological order, skipping roles the model does not take."""
    messages: List[Dict[str, str]] = []
    for turn in reversed(list(turns_newest_first)):
        if turn.role not in (USER, ASSISTANT) or not turn.text.strip():
            continue
        messages.append({"role": turn.role, "content": turn.text})
    return messages
