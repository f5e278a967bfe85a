"""
Search service module for the diary search service.

This module scans a bounded window of an owner's most recent records,
filters them with one of several matching strategies and caches the result
sets. It also produces type-ahead suggestions from recent titles and tags.
"""
import asyncio
import logging
import math
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..api.models import Record
from ..utils.cache import (
    is_empty_query,
    normalize_query_text,
    search_cache_key,
    suggestions_cache_key,
)
from ..utils.text_processing import any_contains, contains, significant_words
from .cache_service import MISS, TTLCache
from .record_store import RecordStoreClient, sort_newest_first
from .throttle_service import QueryThrottle

# Setup logging
logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50
DEFAULT_WINDOW_FACTOR = 2
DEFAULT_SUGGESTION_WINDOW = 100
DEFAULT_MAX_SUGGESTIONS = 10
DEFAULT_MIN_SUGGESTION_LENGTH = 2


class SearchStrategy(str, Enum):
    """Matching strategies offered to callers."""
    SMART = "smart"  # Phrase match, then multi-word threshold over all fields
    TITLE = "title"  # Titles only
    CONTENT = "content"  # Bodies only
    TAGS = "tags"  # Tags only
    FULL_TEXT = "full_text"  # Whole query in any field, no word logic


def matches_smart(record: Record, query: str, words: List[str]) -> bool:
    """
    Apply the smart matching rules to one record.

    A phrase match on title or body wins outright. With several significant
    words, at least half of them (rounded up) must each occur in the title,
    body or a tag. With one significant word that word must occur somewhere;
    with none, the whole query must.

    Args:
        record: Candidate record
        query: Normalized query text
        words: Significant words of the query

    Returns:
        bool: True if the record matches
    """
    if contains(record.title, query) or contains(record.body, query):
        return True

    if len(words) > 1:
        found = sum(
            1 for word in words
            if contains(record.title, word) or contains(record.body, word) or any_contains(record.tags, word)
        )
        return found >= math.ceil(len(words) / 2)

    needle = words[0] if words else query
    return contains(record.title, needle) or contains(record.body, needle) or any_contains(record.tags, needle)


def matches_title(record: Record, query: str, words: List[str]) -> bool:
    return contains(record.title, query)


def matches_content(record: Record, query: str, words: List[str]) -> bool:
    return contains(record.body, query)


def matches_tags(record: Record, query: str, words: List[str]) -> bool:
    return any_contains(record.tags, query)


def matches_full_text(record: Record, query: str, words: List[str]) -> bool:
    return matches_title(record, query, words) or matches_content(record, query, words) or matches_tags(record, query, words)


Matcher = Callable[[Record, str, List[str]], bool]

MATCHERS: Dict[SearchStrategy, Matcher] = {
    SearchStrategy.SMART: matches_smart,
    SearchStrategy.TITLE: matches_title,
    SearchStrategy.CONTENT: matches_content,
    SearchStrategy.TAGS: matches_tags,
    SearchStrategy.FULL_TEXT: matches_full_text,
}


def filter_records(
    candidates: List[Record],
    query: str,
    category: Optional[int] = None,
    strategy: SearchStrategy = SearchStrategy.SMART,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> List[Record]:
    """
    Select matching records from a candidate window.

    Candidates are scanned newest first and collection stops once ``limit``
    matches are found. The category filter is combined with the text match;
    an empty query with a category returns the category matches.

    Args:
        candidates: Records fetched from the store
        query: Raw query text
        category: Category rating that matches must have (optional)
        strategy: Matching strategy
        limit: Maximum number of results

    Returns:
        List[Record]: Matches ordered by occurred_at descending
    """
    normalized = normalize_query_text(query)
    words = significant_words(normalized)
    matcher = MATCHERS[strategy]

    results: List[Record] = []
    for record in sort_newest_first(candidates):
        if len(results) >= limit:
            break
        if category is not None and record.category_rating != category:
            continue
        if normalized and not matcher(record, normalized, words):
            continue
        results.append(record)
    return results


class SearchEngine:
    """
    Cached free-text search over an owner's recent records.

    Attributes:
        store: Record store the candidate window is fetched from
        cache: Cache holding search results and suggestions
        throttle: Per-owner duplicate query suppression
    """

    def __init__(
        self,
        store: RecordStoreClient,
        cache: TTLCache,
        throttle: QueryThrottle,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
        window_factor: int = DEFAULT_WINDOW_FACTOR,
        suggestion_window: int = DEFAULT_SUGGESTION_WINDOW,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
        min_suggestion_length: int = DEFAULT_MIN_SUGGESTION_LENGTH,
    ) -> None:
        self.store = store
        self.cache = cache
        self.throttle = throttle
        self.default_limit = default_limit
        self.window_factor = window_factor
        self.suggestion_window = suggestion_window
        self.max_suggestions = max_suggestions
        self.min_suggestion_length = min_suggestion_length

    def cache_key(
        self,
        owner_id: str,
        query: str,
        category: Optional[int] = None,
        strategy: SearchStrategy = SearchStrategy.SMART,
        limit: Optional[int] = None,
    ) -> str:
        limit = self.default_limit if limit is None else limit
        return search_cache_key(
            owner_id,
            query,
            category,
            strategy=None if strategy == SearchStrategy.SMART else strategy.value,
            limit=None if limit == self.default_limit else limit,
        )

    async def search(
        self,
        owner_id: str,
        query: str,
        category: Optional[int] = None,
        strategy: SearchStrategy = SearchStrategy.SMART,
        limit: Optional[int] = None,
        use_cache: bool = True,
    ) -> List[Record]:
        """
        Search an owner's records.

        Args:
            owner_id: Owner whose records are searched
            query: Free-text query
            category: Category rating filter (optional)
            strategy: Matching strategy
            limit: Maximum number of results, the engine default if omitted
            use_cache: Whether a cached result set may be served

        Returns:
            List[Record]: Matching records ordered by occurred_at descending

        Raises:
            FetchFailure: If the record store cannot be read
        """
        if is_empty_query(query, category):
            return []

        limit = self.default_limit if limit is None else limit
        key = self.cache_key(owner_id, query, category, strategy, limit)

        if self.throttle.is_throttled(owner_id):
            cached = self.cache.get(key)
            if cached is not MISS:
                return cached
            in_flight = self.cache.pending(key)
            if in_flight is not None:
                return await asyncio.shield(in_flight)
            logger.debug(f"Search throttled for owner {owner_id}, no cached results for '{query}'")
            return []

        if use_cache:
            cached = self.cache.get(key)
            if cached is not MISS:
                logger.debug(f"Search cache hit for owner {owner_id}: '{query}'")
                return cached

        self.throttle.mark_issued(owner_id)

        async def run_search() -> List[Record]:
            candidates = await self.store.fetch_by_owner(owner_id, limit * self.window_factor)
            results = filter_records(candidates, query, category, strategy, limit)
            logger.info(
                f"Search '{normalize_query_text(query)}' for owner {owner_id} matched "
                f"{len(results)} of {len(candidates)} candidates"
            )
            return results

        if not use_cache:
            results = await run_search()
            self.cache.put(key, results)
            return results
        return await self.cache.load(key, run_search)

    async def suggestions(self, owner_id: str, partial: str) -> List[str]:
        """
        Suggest titles and tags containing a partial query.

        Args:
            owner_id: Owner whose records are scanned
            partial: Text typed so far

        Returns:
            List[str]: Distinct titles and tags in first-seen order

        Raises:
            FetchFailure: If the record store cannot be read
        """
        needle = normalize_query_text(partial)
        if len(needle) < self.min_suggestion_length:
            return []

        async def collect() -> List[str]:
            recent = await self.store.fetch_by_owner(owner_id, self.suggestion_window)
            found: List[str] = []
            for record in recent:
                for value in [record.title, *record.tags]:
                    if len(found) >= self.max_suggestions:
                        return found
                    if value and value not in found and contains(value, needle):
                        found.append(value)
            return found

        return await self.cache.load(suggestions_cache_key(owner_id, needle), collect)
