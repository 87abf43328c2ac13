"""
Batch streamed text so consumers are not flooded with tiny updates.

A batch is released when it is the first text of the stream, when it contains
a newline, or when the flush interval has passed since the previous release.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional


class ChunkBatcher:
    def __init__(self, interval: float = 0.05, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._parts: List[str] = []
        self._has_newline = False
        self._last_flush: Optional[float] = None

    @property
    def pending(self) -> bool:
        return bool(self._parts)

    def add(self, text: str) -> Optional[str]:
        """Buffer ``text``; return the batch if it should be released now."""
        if not text:
            return None
        self._parts.append(text)
        if "\n" in text:
            self._has_newline = True
        if self.should_flush():
            return self.flush()
        return None

    def should_flush(self) -> bool:
        if not self._parts:
            return False
        if self._last_flush is None or self._has_newline:
            return True
        return self._clock() - self._last_flush >= self.interval

    def due_in(self) -> Optional[float]:
        """Seconds until pending text is due, or None when nothing is buffered."""
        if not self._parts:
            return None
        if self._last_flush is None:
            return 0.0
        return max(0.0, self.interval - (self._clock() - self._last_flush))

    def flush(self) -> str:
        text = "".join(self._parts)
        self._parts.clear()
        self._has_newline = False
        self._last_flush = self._clock()
        return text
