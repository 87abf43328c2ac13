"""
Context builder for bookmark answer generation.

Formats retrieved items into numbered blocks carrying the item id, so the
model can cite them with [ITEM:id]@handle[/ITEM] markers.
"""

from __future__ import annotations

import datetime as dt
from typing import List, Sequence

from bookmark_rag.rag.index import Item

NO_RESULTS_CONTEXT = "No bookmarks found matching the search criteria."


def format_date(ts: dt.datetime) -> str:
    """``Mar 5, 2025`` style date."""
    return f"{ts:%b} {ts.day}, {ts.year}"


def build_context(items: Sequence[Item], max_items: int = 30, include_ids: bool = True) -> str:
    """
    Format items into a single context string.

    Each block looks like::

        [1] ID:123 @handle (Display Name) - Mar 5, 2025:
        post text
        ---
    """
    if not items:
        return NO_RESULTS_CONTEXT

    parts: List[str] = []
    for i, item in enumerate(items[:max_items], 1):
        ident = f"ID:{item.id} " if include_ids else ""
        header = (
            f"[{i}] {ident}@{item.author_handle} ({item.author_name}) - "
            f"{format_date(item.posted_at)}:"
        )
        parts.append(f"{header}\n{item.content.strip()}\n---")
    return "\n".join(parts)
