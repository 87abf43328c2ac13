"""
Split the follow-up question section off a generated answer.
"""

from __future__ import annotations

import re
from typing import List, Tuple

FOLLOWUPS_MARKER = "---FOLLOWUPS---"

_PREFIX_RE = re.compile(r"^(?:[-•*]\s*|\d{1,2}[.)]\s*)")


def _clean_line(line: str) -> str:
    line = line.strip()
    line = _PREFIX_RE.sub("", line, count=1)
    return line.strip()


def split_followups(text: str, max_followups: int = 3) -> Tuple[str, List[str]]:
    """
    Return ``(answer, followups)``.

    Everything before the marker is the answer. Lines after it are trimmed,
    stripped of bullet or number prefixes, emptied lines dropped, and capped.
    """
    idx = text.find(FOLLOWUPS_MARKER)
    if idx < 0:
        return text.strip(), []

    answer = text[:idx].strip()
    section = text[idx + len(FOLLOWUPS_MARKER) :]
    followups: List[str] = []
    for line in section.splitlines():
        cleaned = _clean_line(line)
        if not cleaned:
            continue
        followups.append(cleaned)
        if len(followups) >= max_followups:
            break
    return answer, followups
