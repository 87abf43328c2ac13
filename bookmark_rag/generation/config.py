"""Configuration for answer generation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class GenerationConfig:
    """Settings for streamed answer generation."""

    max_tokens: int = 1500
    temperature: float = 0.3
    parse_max_tokens: int = 500
    max_context_items: int = 30
    history_turns: int = 10
    max_followups: int = 3
    # UI update throttle; a newline or the first chunk flushes immediately
    flush_interval_seconds: float = 0.05
    chunk_queue_size: int = 256
    summary_max_tokens: int = 150
