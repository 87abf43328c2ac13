"""
Answer generation over retrieved bookmarks.

- Context building from retrieved items (ID-tagged numbered blocks)
- Streamed answer generation with [ITEM:id]@handle[/ITEM] citations
- Follow-up question splitting and citation extraction from model output
- Batching of streamed text for consumers
- Short per-bookmark summaries
"""

from .batching import ChunkBatcher
from .citations import Citation, cited_item_ids, extract_citations, render_unresolved
from .config import GenerationConfig
from .context_builder import NO_RESULTS_CONTEXT, build_context
from .followups import FOLLOWUPS_MARKER, split_followups
from .generator import AnswerGenerator, GeneratedAnswer, build_system_prompt, finish_answer
from .prompts import ANSWER_SYSTEM_PROMPT, SUGGESTED_QUESTIONS
from .summarizer import Summarizer, SummaryReport

__all__ = [
    "ANSWER_SYSTEM_PROMPT",
    "AnswerGenerator",
    "build_context",
    "build_system_prompt",
    "ChunkBatcher",
    "Citation",
    "cited_item_ids",
    "extract_citations",
    "finish_answer",
    "FOLLOWUPS_MARKER",
    "GeneratedAnswer",
    "GenerationConfig",
    "NO_RESULTS_CONTEXT",
    "render_unresolved",
    "split_followups",
    "SUGGESTED_QUESTIONS",
    "Summarizer",
    "SummaryReport",
]
