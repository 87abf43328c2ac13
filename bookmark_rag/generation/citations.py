"""
Parse [ITEM:<id>]@<handle>[/ITEM] citation markers in generated answers.

Markers are left in the answer for the caller to render. A marker whose id is
not among the retrieved items cannot be resolved and should be shown as plain
text; ``render_unresolved`` does that substitution.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from bookmark_rag.rag.index import Item

CITATION_RE = re.compile(r"\[ITEM:([^\]\s]+)\]@?(.*?)\[/ITEM\]", re.DOTALL)


@dataclass
class Citation:
    """A single citation marker found in an answer."""

    item_id: str
    handle: str
    resolved: bool
    start: int
    end: int


def extract_citations(answer: str, items: Sequence[Item]) -> List[Citation]:
    """Every marker in order of appearance, flagged by whether its id was retrieved."""
    known = {it.id for it in items}
    citations: List[Citation] = []
    for m in CITATION_RE.finditer(answer):
        item_id = m.group(1).strip()
        citations.append(
            Citation(
                item_id=item_id,
                handle=m.group(2).strip().lstrip("@"),
                resolved=item_id in known,
                start=m.start(),
                end=m.end(),
            )
        )
    return citations


def cited_item_ids(citations: Iterable[Citation]) -> List[str]:
    """Resolved item ids, first occurrence order, without duplicates."""
    seen: List[str] = []
    for c in citations:
        if c.resolved and c.item_id not in seen:
            seen.append(c.item_id)
    return seen


def render_unresolved(answer: str, items: Sequence[Item]) -> str:
    """Replace markers pointing at unknown items with plain ``@handle`` text."""
    known = {it.id for it in items}

    def _sub(m: re.Match[str]) -> str:
        if m.group(1).strip() in known:
            return m.group(0)
        handle = m.group(2).strip().lstrip("@")
        return f"@{handle}" if handle else ""

    return CITATION_RE.sub(_sub, answer)
