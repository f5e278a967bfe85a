"""
Cache key utilities for the diary search service.

This module builds deterministic cache keys for every logical query shape.
Two calls describing the same query always produce the same key, and keys for
different owners, query kinds or parameters never collide.
"""
import logging
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Union
from urllib.parse import quote

# Setup logging
logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"
NO_FILTER = "none"

DateLike = Union[date, datetime]


class QueryKind(str, Enum):
    """Query shapes that own a slot in the caches."""
    LIST = "list"
    BY_DATE = "byDate"
    BY_MONTH = "byMonth"
    SEARCH = "search"
    RECENT_SUGGESTIONS = "recentSuggestions"


def normalize_query_text(text: Optional[str]) -> str:
    """
    Normalize free text for matching and keying.

    Args:
        text: Raw query text

    Returns:
        str: Lower-cased text without leading or trailing whitespace
    """
    if not text:
        return ""
    return text.strip().lower()


def is_empty_query(text: Optional[str], category: Optional[int] = None) -> bool:
    """
    Check whether a search request is a no-op.

    A whitespace-only query without a category filter never reaches the cache
    or the record store.

    Args:
        text: Raw query text
        category: Category rating filter (optional)

    Returns:
        bool: True if the request should short-circuit to an empty result
    """
    return not normalize_query_text(text) and category is None


def day_parts(value: DateLike) -> Tuple[int, int, int]:
    """
    Reduce a date or datetime to its calendar day.

    Args:
        value: Date or datetime

    Returns:
        Tuple[int, int, int]: (year, month, day)
    """
    return value.year, value.month, value.day


def _quote(value: str) -> str:
    return quote(value, safe="")


def _format_param(value: object) -> str:
    if value is None:
        return NO_FILTER
    if isinstance(value, Enum):
        return _quote(str(value.value))
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    return _quote(str(value))


def owner_key_prefix(owner_id: str) -> str:
    """
    Prefix shared by every key that belongs to ``owner_id``.

    The separator is included so that ``user1`` never matches ``user10``.

    Args:
        owner_id: Owning user

    Returns:
        str: Key prefix
    """
    return f"{_quote(owner_id)}{KEY_SEPARATOR}"


def build_cache_key(owner_id: str, kind: QueryKind, *params: object) -> str:
    """
    Generate a cache key for one logical query.

    Joins the quoted owner id, the query kind and the kind-specific parameters
    with a fixed separator. Parameters are expected to be normalized by the
    caller; ``None`` becomes the no-filter sentinel and strings are quoted so
    they cannot introduce separators.

    Args:
        owner_id: Owning user
        kind: Query kind
        *params: Normalized, kind-specific parameters

    Returns:
        str: Cache key
    """
    parts = [_format_param(kind)] + [_format_param(param) for param in params]
    return owner_key_prefix(owner_id) + KEY_SEPARATOR.join(parts)


def list_cache_key(owner_id: str, limit: int, offset: int = 0) -> str:
    """Key for a page of the latest entries."""
    if offset:
        return build_cache_key(owner_id, QueryKind.LIST, limit, offset)
    return build_cache_key(owner_id, QueryKind.LIST, limit)


def date_cache_key(owner_id: str, day: DateLike) -> str:
    """Key for the entries of one calendar day; time of day is ignored."""
    year, month, day_of_month = day_parts(day)
    return build_cache_key(owner_id, QueryKind.BY_DATE, f"{year:04d}-{month:02d}-{day_of_month:02d}")


def month_cache_key(owner_id: str, month: DateLike) -> str:
    """Key for the entries of one calendar month."""
    return build_cache_key(owner_id, QueryKind.BY_MONTH, f"{month.year:04d}-{month.month:02d}")


def search_cache_key(
    owner_id: str,
    text: Optional[str],
    category: Optional[int] = None,
    strategy: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    """
    Key for a search result set.

    The default smart strategy with the default limit produces
    ``<owner>:search:<text>:<category|none>``; other strategies and limits are
    appended so they occupy their own slots.

    Args:
        owner_id: Owning user
        text: Raw query text, normalized here
        category: Category rating filter (optional)
        strategy: Strategy name when not the default (optional)
        limit: Result limit when not the default (optional)

    Returns:
        str: Cache key
    """
    params: list = [normalize_query_text(text), category]
    if strategy is not None:
        params.append(strategy)
    if limit is not None:
        params.append(f"limit={limit}")
    return build_cache_key(owner_id, QueryKind.SEARCH, *params)


def suggestions_cache_key(owner_id: str, partial: str) -> str:
    """Key for type-ahead suggestions of a partial query."""
    return build_cache_key(owner_id, QueryKind.RECENT_SUGGESTIONS, "text", normalize_query_text(partial))


def recent_tags_cache_key(owner_id: str, limit: int) -> str:
    """Key for the most recently used tags."""
    return build_cache_key(owner_id, QueryKind.RECENT_SUGGESTIONS, "tags", limit)
