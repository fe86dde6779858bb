"""
Lexical (fuzzy/substring) scoring over titles and descriptions.

Scores are normalized to [0, 1]:
- fuzzy token-set similarity against the title,
- partial (substring) similarity against the description, down-weighted,
- a floor when every query term occurs in the text.
The best of the three wins. Empty query text always scores 0.
"""

import threading
from typing import Optional

from rapidfuzz import fuzz, utils

from contribux.constants import (
    LEXICAL_DESCRIPTION_WEIGHT,
    LEXICAL_TERM_MATCH_SCORE,
    LEXICAL_TITLE_WEIGHT,
)
from contribux.exceptions import InvalidLimit
from contribux.utils import clamp


def lexical_score(query_text: Optional[str], title: Optional[str], description: Optional[str] = None) -> float:
    """
    Score how well ``query_text`` matches a title/description pair.

    Args:
        query_text: Free-text query
        title: Item title
        description: Item description (optional)

    Returns:
        Score in [0, 1]; 0.0 for empty query text.
    """
    query = utils.default_process(query_text or "")
    if not query:
        return 0.0
    title_text = utils.default_process(title or "")
    description_text = utils.default_process(description or "")

    title_score = fuzz.token_set_ratio(query, title_text) / 100.0 if title_text else 0.0
    description_score = fuzz.partial_ratio(query, description_text) / 100.0 if description_text else 0.0

    haystack = f"{title_text} {description_text}"
    term_score = LEXICAL_TERM_MATCH_SCORE if all(term in haystack for term in query.split()) else 0.0

    best = max(
        LEXICAL_TITLE_WEIGHT * title_score,
        LEXICAL_DESCRIPTION_WEIGHT * description_score,
        term_score,
    )
    return clamp(best, 0.0, 1.0)


class LexicalIndex:
    """
    In-memory text store used for lexical candidate recall.

    Usage:
        index = LexicalIndex()
        index.upsert(3, "Fix flaky test", "The CI job times out")
        index.search("flaky test", limit=20)
    """

    def __init__(self):
        self._documents: dict[int, tuple[str, str]] = {}
        self._lock = threading.Lock()

    def upsert(self, item_id: int, title: Optional[str], description: Optional[str] = None) -> None:
        with self._lock:
            self._documents[item_id] = (title or "", description or "")

    def remove(self, item_id: int) -> bool:
        with self._lock:
            return self._documents.pop(item_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()

    def search(self, query_text: Optional[str], limit: int, min_score: float = 0.0) -> list[tuple[int, float]]:
        """
        Top ``limit`` (id, score) pairs, score descending then id ascending.
        Zero scores are never returned.
        """
        if limit <= 0:
            raise InvalidLimit(limit)
        if not (query_text or "").strip():
            return []
        with self._lock:
            documents = list(self._documents.items())
        hits = []
        for item_id, (title, description) in documents:
            score = lexical_score(query_text, title, description)
            if score > 0.0 and score >= min_score:
                hits.append((item_id, score))
        hits.sort(key=lambda h: (-h[1], h[0]))
        return hits[:limit]

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._documents


__all__ = ["lexical_score", "LexicalIndex"]
