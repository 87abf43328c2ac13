"""
Answer generator: builds the grounded system prompt and opens the LLM stream.
Follow-ups and citations are split out of the finished text separately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from bookmark_rag.llm.client import ChatClient, ChatStream
from bookmark_rag.rag.index import Item

from .citations import Citation, extract_citations
from .config import GenerationConfig
from .context_builder import build_context
from .followups import split_followups
from .prompts import ANSWER_SYSTEM_PROMPT


@dataclass
class GeneratedAnswer:
    """Finished answer text with follow-ups and citations separated out."""

    answer: str
    followups: List[str] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    raw_text: str = ""


def build_system_prompt(items: Sequence[Item], config: Optional[GenerationConfig] = None) -> str:
    config = config or GenerationConfig()
    context = build_context(items, max_items=config.max_context_items)
    return ANSWER_SYSTEM_PROMPT.format(context=context)


def finish_answer(
    raw_text: str,
    items: Sequence[Item],
    config: Optional[GenerationConfig] = None,
) -> GeneratedAnswer:
    """Split follow-ups off the full text and locate citation markers."""
    config = config or GenerationConfig()
    answer, followups = split_followups(raw_text, max_followups=config.max_followups)
    return GeneratedAnswer(
        answer=answer,
        followups=followups,
        citations=extract_citations(answer, items),
        raw_text=raw_text,
    )


class AnswerGenerator:
    """Generate answers over retrieved bookmarks using the LLM."""

    def __init__(self, client: ChatClient, config: Optional[GenerationConfig] = None):
        self.client = client
        self.config = config or GenerationConfig()

    def open_stream(
        self,
        question: str,
        items: Sequence[Item],
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> ChatStream:
        """Start streaming an answer. History messages go before the question."""
        messages: List[Dict[str, str]] = list(history or [])
        messages.append({"role": "user", "content": question})
        return self.client.stream(
            messages,
            system_prompt=build_system_prompt(items, self.config),
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

