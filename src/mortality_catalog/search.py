"""
mortality_catalog/search.py - Fuzzy Search & Filter Engine

Approximate substring matching over catalog fields.

Mathematical Framework:
- d(p, T) = min over substrings S of T of EditDistance(p, S)
  (semi-global alignment: the match may start and end anywhere in T)
- score(p, T) = min(1, d(p, T) / |p|)      0 = exact substring, 1 = no match
- A field matches when score <= threshold (default 0.32)

Match position inside a field carries no weight. An item's relevance is its
best field score; results are ordered by (score, catalog position) so the
same query over the same catalog always yields the same order.

Searched fields: name, identifier, tableIdentity, provider, summary and
each keyword separately.

License: MIT
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import TableSummary

logger = logging.getLogger(__name__)


DEFAULT_THRESHOLD = 0.32

SEARCH_KEYS = ('name', 'identifier', 'table_identity', 'provider', 'summary', 'keywords')


# =============================================================================
# APPROXIMATE MATCHING
# =============================================================================

def _codepoints(text: str) -> np.ndarray:
    return np.frombuffer(text.encode('utf-32-le'), dtype=np.uint32)


def substring_edit_distance(pattern: str, text: str, limit: Optional[float] = None) -> int:
    """
    Minimum edit distance between pattern and any substring of text.

    Row minima never decrease, so once every cell exceeds limit the scan
    stops and returns that row minimum (a value above limit).

    Row-vectorized DP: for pattern character i,
        cand[j] = min(prev[j-1] + [p_i != t_j], prev[j] + 1)
        row[j]  = min_{k<=j} (cand[k] + (j - k))
    The second line (horizontal insertions) is a running minimum of
    cand[k] - k, which numpy computes with minimum.accumulate.
    """
    m = len(pattern)
    if m == 0:
        return 0
    n = len(text)
    if n == 0:
        return m

    p = _codepoints(pattern)
    t = _codepoints(text)
    offsets = np.arange(n + 1, dtype=np.int64)

    # Free start: a match may begin at any text position
    row = np.zeros(n + 1, dtype=np.int64)
    for i in range(m):
        cand = np.empty(n + 1, dtype=np.int64)
        cand[0] = i + 1
        cand[1:] = np.minimum(row[:-1] + (t != p[i]), row[1:] + 1)
        row = np.minimum.accumulate(cand - offsets) + offsets
        if limit is not None and row.min() > limit:
            break

    return int(row.min())


def match_score(pattern: str, text: str, threshold: float = 1.0) -> float:
    """
    Normalized approximate-match score on [0, 1].

    Both arguments are expected to be already lower-cased. Scores above
    threshold are not computed exactly: any such pair scores 1.0.
    """
    if not pattern:
        return 0.0
    if pattern in text:
        return 0.0

    m = len(pattern)
    budget = threshold * m + 1e-9

    # Lower bounds: unmatched length, and pattern characters absent from text
    if m - len(text) > budget:
        return 1.0
    present = set(text)
    if sum(1 for ch in pattern if ch not in present) > budget:
        return 1.0

    distance = substring_edit_distance(pattern, text, limit=budget)
    if distance > budget:
        return 1.0
    return min(1.0, distance / m)


def normalize_query(query: Optional[str]) -> str:
    return (query or '').strip().lower()


# =============================================================================
# SEARCH INDEX
# =============================================================================

@dataclass
class SearchHit:
    """One matching catalog row."""
    summary: TableSummary
    score: float
    field: str
    position: int


class SearchIndex:
    """
    Fuzzy index over a catalog.

    Field texts are lower-cased once when the index is built; build a new
    index whenever the catalog changes. The most recent query's result is kept, so repeated reads of the same
    filter cost nothing.

    Attributes:
        catalog: Summaries in catalog order
        threshold: Maximum score that still counts as a match
    """

    def __init__(self, catalog: Sequence[TableSummary],
                 threshold: float = DEFAULT_THRESHOLD,
                 keys: Sequence[str] = SEARCH_KEYS):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Search threshold must be within [0, 1]: {threshold}")

        self.catalog = list(catalog)
        self.threshold = threshold
        self.keys = tuple(keys)
        self._fields = [self._field_texts(summary) for summary in self.catalog]
        self._last: Optional[Tuple[str, List[SearchHit], List[TableSummary]]] = None

        logger.debug(f"SearchIndex built: {len(self.catalog)} rows, threshold={threshold}")

    def _field_texts(self, summary: TableSummary) -> List[Tuple[str, str]]:
        texts = []
        for key in self.keys:
            value = getattr(summary, key)
            if isinstance(value, (tuple, list)):
                texts.extend((key, str(item).lower()) for item in value)
            elif value:
                texts.append((key, str(value).lower()))
        return texts

    def _best_field(self, pattern: str, fields: List[Tuple[str, str]]) -> Optional[Tuple[float, str]]:
        best: Optional[Tuple[float, str]] = None
        for key, text in fields:
            score = match_score(pattern, text, self.threshold)
            if score <= self.threshold and (best is None or score < best[0]):
                best = (score, key)
                if score == 0.0:
                    break
        return best

    def search(self, query: str) -> List[SearchHit]:
        """
        Ranked hits for a non-empty query.

        Returns an empty list for an empty/whitespace query; use filter()
        for the list-view semantics.
        """
        pattern = normalize_query(query)
        if not pattern:
            return []

        if self._last is not None and self._last[0] == pattern:
            return self._last[1]

        hits = []
        for position, (summary, fields) in enumerate(zip(self.catalog, self._fields)):
            best = self._best_field(pattern, fields)
            if best is not None:
                hits.append(SearchHit(summary, best[0], best[1], position))

        hits.sort(key=lambda hit: (hit.score, hit.position))
        self._last = (pattern, hits, [hit.summary for hit in hits])
        return hits

    def filter(self, query: Optional[str]) -> List[TableSummary]:
        """
        Filtered catalog for a query.

        Empty or whitespace-only queries return the catalog itself in
        catalog order.
        """
        pattern = normalize_query(query)
        if not pattern:
            return self.catalog
        self.search(pattern)
        return self._last[2]


def filter_catalog(catalog: Sequence[TableSummary], query: Optional[str],
                   threshold: float = DEFAULT_THRESHOLD) -> List[TableSummary]:
    """One-shot convenience wrapper around SearchIndex.filter()."""
    return SearchIndex(catalog, threshold=threshold).filter(query)
