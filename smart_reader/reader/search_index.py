"""
Search Index - Cross-page term search

Answers "which pages contain term X, and how many times" over the
per-page texts of the open document.

Design decisions:
    - Recomputed from scratch on every term change; the scan is linear in
      the document's text and page counts are bounded by extraction limits
    - Case-insensitive, non-overlapping literal matching (the term is
      regex-escaped, so punctuation in a search box is never a pattern)
    - An empty/whitespace term yields [] ("no active search"), which callers
      must keep distinct from a real search with no hits
    - The navigation position lives in SearchCursor, owned by the caller,
      and resets whenever the result set is replaced
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from .models import SearchResult
from ..observability.logging import get_logger

logger = get_logger(__name__)


class SearchIndex:
    """
    Stateless page search.

    Usage:
        index = SearchIndex()
        results = index.search(["A A", "B", "A"], "a")
        # [SearchResult(page=1, count=2), SearchResult(page=3, count=1)]
    """

    def search(self, page_texts: Sequence[str], term: str) -> list[SearchResult]:
        """
        Count occurrences of term on each page.

        Args:
            page_texts: Page texts in page order (index 0 is page 1).
            term: Search term; leading/trailing whitespace is significant
                  only when the term has other characters.

        Returns:
            One SearchResult per page with at least one match, by ascending page.
        """
        if not term or not term.strip():
            return []

        pattern = re.compile(re.escape(term), re.IGNORECASE)
        results: list[SearchResult] = []
        for index, text in enumerate(page_texts):
            count = sum(1 for _ in pattern.finditer(text or ""))
            if count:
                results.append(SearchResult(page=index + 1, count=count))

        logger.debug(
            "search_index.search",
            term_length=len(term),
            pages_scanned=len(page_texts),
            pages_matched=len(results),
            total_matches=sum(r.count for r in results),
        )
        return results


class SearchCursor:
    """
    Caller-owned position within a result set.

    The position is None ("none selected") after every reset. Moving
    forward from None lands on the first result, moving backward from
    None lands on the last; both directions wrap around.
    """

    def __init__(self, results: Optional[Sequence[SearchResult]] = None) -> None:
        self._results: tuple[SearchResult, ...] = tuple(results or ())
        self._index: Optional[int] = None

    @property
    def results(self) -> tuple[SearchResult, ...]:
        return self._results

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def current(self) -> Optional[SearchResult]:
        if self._index is None:
            return None
        return self._results[self._index]

    def reset(self, results: Sequence[SearchResult]) -> None:
        """Replace the result set and clear the selection."""
        self._results = tuple(results)
        self._index = None

    def next(self) -> Optional[SearchResult]:
        if not self._results:
            return None
        if self._index is None:
            self._index = 0
        else:
            self._index = (self._index + 1) % len(self._results)
        return self._results[self._index]

    def previous(self) -> Optional[SearchResult]:
        if not self._results:
            return None
        if self._index is None:
            self._index = len(self._results) - 1
        else:
            self._index = (self._index - 1) % len(self._results)
        return self._results[self._index]
