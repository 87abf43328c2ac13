"""
Turn a free-text question into structured search parameters.

The LLM is asked for strict JSON. Parsing is split in two explicit paths:
``parse_structured`` validates the model output and reports failure as a
value, and ``fallback_params`` derives keywords from the raw question.
``QueryInterpreter.parse`` combines them and never raises.
"""

from __future__ import annotations

import calendar
import datetime as dt
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..llm.errors import LLMError
from .utils import alnum_tokens

logger = logging.getLogger(__name__)

QUERY_PARSER_PROMPT = """You are a search query parser. Extract search parameters from the user's question about their Twitter/X bookmarks.

Return ONLY valid JSON in this exact format (no markdown, no explanation):
{
    "keywords": ["keyword1", "keyword2"],
    "dateRange": {"unit": "months", "amount": 3},
    "authors": ["handle1", "handle2"],
    "topics": ["topic1", "topic2"]
}

Rules:
- keywords: Important search terms (nouns, topics, specific words). Exclude common words like "tell", "show", "find", "bookmarks", "tweets", "saved".
- dateRange: If user mentions time like "last 3 months", "past week", "yesterday". Use unit: "days"/"weeks"/"months"/"years". Set to null if no time mentioned.
- authors: Twitter handles if user mentions specific people (without @). Set to null if none.
- topics: General topics/categories mentioned. Set to null if just searching keywords.

Examples:
- "anime tweets from last 3 months" -> {"keywords": ["anime"], "dateRange": {"unit": "months", "amount": 3}, "authors": null, "topics": ["anime", "entertainment"]}
- "what did @elonmusk say about AI" -> {"keywords": ["AI"], "dateRange": null, "authors": ["elonmusk"], "topics": ["AI", "technology"]}
- "crypto news" -> {"keywords": ["crypto", "news"], "dateRange": null, "authors": null, "topics": ["cryptocurrency", "finance"]}"""

DATE_UNITS = ("day", "week", "month", "year")
FALLBACK_MIN_TOKEN_LEN = 4

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def _earliest(ts: dt.datetime) -> dt.datetime:
    """Lower bound for windows reaching past the first representable date."""
    if ts.tzinfo is None:
        return dt.datetime.min
    return dt.datetime.min.replace(tzinfo=dt.timezone.utc)


def _months_back(ts: dt.datetime, months: int) -> dt.datetime:
    total = ts.year * 12 + (ts.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    if year < dt.MINYEAR:
        return _earliest(ts)
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


@dataclass(frozen=True)
class DateRange:
    """Relative window ending now, e.g. the last 3 months."""

    unit: str
    amount: int

    def start(self, now: dt.datetime) -> dt.datetime:
        """Earliest timestamp inside the window, clamped to the first representable date."""
        try:
            if self.unit == "day":
                return now - dt.timedelta(days=self.amount)
            if self.unit == "week":
                return now - dt.timedelta(weeks=self.amount)
        except OverflowError:
            return _earliest(now)
        if self.unit == "year":
            return _months_back(now, 12 * self.amount)
        return _months_back(now, self.amount)


@dataclass
class SearchParams:
    """Structured search parameters for one question."""

    keywords: List[str] = field(default_factory=list)
    date_range: Optional[DateRange] = None
    authors: Optional[List[str]] = None
    topics: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "dateRange": (
                {"unit": self.date_range.unit, "amount": self.date_range.amount}
                if self.date_range
                else None
            ),
            "authors": list(self.authors) if self.authors is not None else None,
            "topics": list(self.topics) if self.topics is not None else None,
        }


class _DateRangePayload(BaseModel):
    unit: str
    amount: int = Field(gt=0)

    @field_validator("unit")
    @classmethod
    def _normalize_unit(cls, value: str) -> str:
        unit = value.strip().lower()
        if unit.endswith("s"):
            unit = unit[:-1]
        if unit not in DATE_UNITS:
            logger.info("Unknown date unit %r, using month", value)
            return "month"
        return unit


class _SearchParamsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    keywords: List[str]
    date_range: Optional[_DateRangePayload] = Field(default=None, alias="dateRange")
    authors: Optional[List[str]] = None
    topics: Optional[List[str]] = None


def _clean_list(values: Optional[List[str]], *, strip_at: bool = False) -> Optional[List[str]]:
    if values is None:
        return None
    out: List[str] = []
    for v in values:
        v = v.strip()
        if strip_at:
            v = v.lstrip("@")
        if v:
            out.append(v)
    return out


@dataclass(frozen=True)
class ParsedQuery:
    """Outcome of ``parse_structured``: params on success, an error message otherwise."""

    params: Optional[SearchParams] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.params is not None


def strip_code_fences(raw: str) -> str:
    text = raw.strip()
    fenced = _JSON_FENCE_RE.search(text)
    if fenced:
        return fenced.group(1).strip()
    return text.replace("```json", "").replace("```", "").strip()


def parse_structured(raw: str) -> ParsedQuery:
    """Validate LLM output against the SearchParams shape without raising."""
    text = strip_code_fences(raw or "")
    if not text:
        return ParsedQuery(error="empty response")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return ParsedQuery(error=f"invalid JSON: {e.msg}")
    except (ValueError, RecursionError) as e:
        # too deeply nested, or numbers too long to convert
        return ParsedQuery(error=f"invalid JSON: {type(e).__name__}")
    if not isinstance(data, dict):
        return ParsedQuery(error=f"expected a JSON object, got {type(data).__name__}")
    try:
        payload = _SearchParamsPayload.model_validate(data)
    except ValidationError as e:
        return ParsedQuery(error=f"unexpected shape: {e.error_count()} validation errors")

    date_range = None
    if payload.date_range is not None:
        date_range = DateRange(unit=payload.date_range.unit, amount=payload.date_range.amount)
    params = SearchParams(
        keywords=_clean_list(payload.keywords) or [],
        date_range=date_range,
        authors=_clean_list(payload.authors, strip_at=True),
        topics=_clean_list(payload.topics),
    )
    return ParsedQuery(params=params)


def fallback_params(question: str) -> SearchParams:
    """Keywords are the lowercase alphanumeric tokens longer than three characters."""
    words = [w for w in alnum_tokens(question or "") if len(w) >= FALLBACK_MIN_TOKEN_LEN]
    return SearchParams(keywords=words, date_range=None, authors=None, topics=None)


class QueryInterpreter:
    """Ask the LLM for SearchParams; degrade to ``fallback_params`` on any failure."""

    def __init__(self, client, max_tokens: int = 500, model: Optional[str] = None):
        self.client = client
        self.max_tokens = max_tokens
        self.model = model or getattr(client, "parser_model_name", None)

    def parse(self, question: str) -> SearchParams:
        try:
            raw = self.client.complete(
                question,
                system_prompt=QUERY_PARSER_PROMPT,
                max_tokens=self.max_tokens,
                model=self.model,
            )
        except LLMError as e:
            logger.warning("Query parsing request failed, using keyword fallback: %s", e)
            return fallback_params(question)

        parsed = parse_structured(raw)
        if parsed.params is None:
            logger.info("Query parser output unusable (%s), using keyword fallback", parsed.error)
            return fallback_params(question)
        return parsed.params
