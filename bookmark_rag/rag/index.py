"""
Core records for the bookmark archive and JSONL/JSON export loading.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence


@dataclasses.dataclass(frozen=True)
class Item:
    """A single bookmarked post."""

    id: str
    author_handle: str
    author_name: str
    content: str
    posted_at: dt.datetime
    media_urls: List[str] = dataclasses.field(default_factory=list)
    url: str = ""
    tweet_id: str = ""
    author_avatar: Optional[str] = None
    bookmarked_at: Optional[dt.datetime] = None
    summary: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class StoredEmbedding:
    """Embedding vector persisted for one item."""

    item_id: str
    vector: Sequence[float]
    model_tag: str


def parse_timestamp(value: Any) -> dt.datetime:
    """Parse an ISO-8601 string (or epoch seconds) into an aware UTC datetime."""
    if isinstance(value, dt.datetime):
        ts = value
    elif isinstance(value, (int, float)):
        ts = dt.datetime.fromtimestamp(value, tz=dt.timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        ts = dt.datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts


def item_from_dict(obj: Dict[str, Any]) -> Item:
    """Build an Item from an exported bookmark object (camelCase or snake_case keys)."""

    def pick(*keys: str, default: Any = None) -> Any:
        for k in keys:
            if k in obj and obj[k] is not None:
                return obj[k]
        return default

    item_id = pick("id", "tweetId", "tweet_id")
    if item_id is None:
        raise ValueError("bookmark is missing an id")
    posted = pick("postedAt", "posted_at", "createdAt", "created_at")
    if posted is None:
        raise ValueError(f"bookmark {item_id} is missing postedAt")
    bookmarked = pick("bookmarkedAt", "bookmarked_at")

    return Item(
        id=str(item_id),
        author_handle=str(pick("authorHandle", "author_handle", default="")).lstrip("@"),
        author_name=str(pick("authorName", "author_name", default="")),
        content=str(pick("content", "text", default="")),
        posted_at=parse_timestamp(posted),
        media_urls=list(pick("mediaUrls", "media_urls", default=[])),
        url=str(pick("url", default="")),
        tweet_id=str(pick("tweetId", "tweet_id", default=item_id)),
        author_avatar=pick("authorAvatar", "author_avatar"),
        bookmarked_at=parse_timestamp(bookmarked) if bookmarked is not None else None,
        summary=pick("summary"),
    )


def load_items(path: Path) -> List[Item]:
    """Load bookmarks from a JSON array export or a JSONL file."""
    if not path.exists():
        raise FileNotFoundError(f"bookmark export not found at {path}")

    text = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        # Not a single document: treat as JSONL
        objects = []
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            objects.append(json.loads(line))
    else:
        if isinstance(payload, list):
            objects = payload
        elif isinstance(payload, dict):
            objects = payload.get("bookmarks", [payload])
        else:
            raise ValueError(f"unsupported export format in {path}")

    return [item_from_dict(obj) for obj in objects]
