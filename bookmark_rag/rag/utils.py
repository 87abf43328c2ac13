"""
Utility functions for RAG module.
"""

from __future__ import annotations

import re
from typing import Iterable, List

TOKEN_RE = re.compile(r"[a-z0-9]+")
# Unicode letters and digits, no underscore
ALNUM_RE = re.compile(r"[^\W_]+")

STOPWORDS = frozenset({
    "a", "about", "above", "after", "again", "all", "am", "an", "and", "any",
    "are", "as", "at", "be", "because", "been", "before", "being", "below",
    "between", "both", "but", "by", "can", "could", "did", "do", "does",
    "doing", "down", "during", "each", "few", "for", "from", "further", "had",
    "has", "have", "having", "he", "her", "here", "hers", "him", "his", "how",
    "i", "if", "in", "into", "is", "it", "its", "just", "me", "more", "most",
    "my", "no", "nor", "not", "now", "of", "off", "on", "once", "only", "or",
    "other", "our", "out", "over", "own", "same", "she", "should", "so",
    "some", "such", "than", "that", "the", "their", "them", "then", "there",
    "these", "they", "this", "those", "through", "to", "too", "under",
    "until", "up", "very", "was", "we", "were", "what", "when", "where",
    "which", "while", "who", "whom", "why", "will", "with", "would", "you",
    "your",
})


def iter_terms(text: str) -> Iterable[str]:
    """Lowercase query terms with stop words and single characters removed."""
    for match in TOKEN_RE.finditer(text.lower()):
        tok = match.group(0)
        if len(tok) <= 1:
            continue
        if tok in STOPWORDS:
            continue
        yield tok


def alnum_tokens(text: str) -> List[str]:
    """Split text into lowercase alphanumeric runs."""
    return ALNUM_RE.findall(text.lower())
