"""
One-to-two sentence bookmark summaries, generated with the cheaper parser model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from bookmark_rag.llm.client import ChatClient
from bookmark_rag.llm.errors import LLMError, MissingCredentialError
from bookmark_rag.rag.index import Item

from .config import GenerationConfig
from .prompts import SUMMARY_PROMPT_TEMPLATE, SUMMARY_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SummarySink(Protocol):
    def items_without_summary(self, limit: Optional[int] = None) -> List[Item]:
        ...

    def save_summary(self, item_id: str, summary: str) -> None:
        ...


@dataclass
class SummaryReport:
    total: int
    summarized: int
    failed: int


class Summarizer:
    def __init__(
        self,
        client: ChatClient,
        config: Optional[GenerationConfig] = None,
        model: Optional[str] = None,
    ):
        self.client = client
        self.config = config or GenerationConfig()
        self.model = model or getattr(client, "parser_model_name", None)

    def summarize(self, item: Item) -> str:
        """Summary text for one bookmark; LLM errors propagate."""
        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            handle=item.author_handle, content=item.content.strip()
        )
        raw = self.client.complete(
            prompt,
            system_prompt=SUMMARY_SYSTEM_PROMPT,
            max_tokens=self.config.summary_max_tokens,
            model=self.model,
        )
        return raw.strip()

    def summarize_missing(
        self,
        store: SummarySink,
        limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SummaryReport:
        """
        Summarise bookmarks that have none yet and save each result as it arrives.

        A failure on one bookmark is logged and the batch moves on; a missing
        API key stops before any request.
        """
        if not self.client.has_credentials:
            raise MissingCredentialError()
        items = store.items_without_summary(limit)
        total = len(items)
        summarized = 0
        failed = 0
        for i, item in enumerate(items, 1):
            try:
                summary = self.summarize(item)
            except LLMError as e:
                logger.warning("Could not summarise bookmark %s: %s", item.id, e)
                failed += 1
            else:
                if summary:
                    store.save_summary(item.id, summary)
                    summarized += 1
                else:
                    failed += 1
            if on_progress is not None:
                on_progress(i, total)
        logger.info("Summarised %s of %s bookmarks (%s failed)", summarized, total, failed)
        return SummaryReport(total=total, summarized=summarized, failed=failed)
