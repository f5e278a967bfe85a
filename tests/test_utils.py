"""
Tests for the utility modules of the diary search service.

This module contains tests for the utility functions, including cache key
construction, text matching and HTTP utilities.
"""
from datetime import date, datetime
from typing import List

import pytest
import httpx

from diary_search.utils.cache import (
    build_cache_key,
    date_cache_key,
    is_empty_query,
    list_cache_key,
    month_cache_key,
    normalize_query_text,
    owner_key_prefix,
    QueryKind,
    recent_tags_cache_key,
    search_cache_key,
    suggestions_cache_key,
)
from diary_search.utils.http import safe_api_request
from diary_search.utils.text_processing import any_contains, contains, significant_words

# Cache Key Tests


def test_search_cache_key_format() -> None:
    """Test the key of a default search without a category filter."""
    assert search_cache_key("user1", "Paris") == "user1:search:paris:none"
    assert search_cache_key("user1", "Paris", 2) == "user1:search:paris:2"


def test_search_cache_key_normalizes_text() -> None:
    """Test that case and surrounding whitespace do not change the key."""
    assert search_cache_key("user1", "Paris") == search_cache_key("user1", " paris ")
    assert search_cache_key("user1", "PARIS trip") == search_cache_key("user1", "paris trip  ")


def test_search_cache_key_separates_parameters() -> None:
    """Test that different parameters never share a key."""
    keys = {
        search_cache_key("user1", "paris"),
        search_cache_key("user1", "paris", 1),
        search_cache_key("user1", "paris", strategy="title"),
        search_cache_key("user1", "paris", limit=10),
        search_cache_key("user2", "paris"),
    }
    assert len(keys) == 5


def test_search_cache_key_quotes_separator() -> None:
    """Test that text containing the separator cannot forge another key."""
    assert search_cache_key("user1", "a:2") != search_cache_key("user1", "a", 2)
    assert search_cache_key("user1", "a:b") == "user1:search:a%3Ab:none"


def test_date_cache_key_ignores_time_of_day() -> None:
    """Test that two datetimes on the same day share a key."""
    morning = datetime(2024, 5, 3, 0, 0, 1)
    evening = datetime(2024, 5, 3, 23, 59, 59)

    assert date_cache_key("user1", morning) == date_cache_key("user1", evening)
    assert date_cache_key("user1", morning) == date_cache_key("user1", date(2024, 5, 3))
    assert date_cache_key("user1", morning) == "user1:byDate:2024-05-03"
    assert date_cache_key("user1", morning) != date_cache_key("user1", datetime(2024, 5, 4))


def test_month_cache_key() -> None:
    """Test that any day of a month maps to the month key."""
    assert month_cache_key("user1", date(2024, 5, 1)) == "user1:byMonth:2024-05"
    assert month_cache_key("user1", date(2024, 5, 31)) == month_cache_key("user1", date(2024, 5, 1))


def test_list_and_suggestion_keys() -> None:
    """Test list, suggestion and recent tag key shapes."""
    assert list_cache_key("user1", 15) == "user1:list:15"
    assert list_cache_key("user1", 15, 30) == "user1:list:15:30"
    assert suggestions_cache_key("user1", " Par") == "user1:recentSuggestions:text:par"
    assert recent_tags_cache_key("user1", 10) == "user1:recentSuggestions:tags:10"
    assert build_cache_key("user1", QueryKind.LIST, 15) == list_cache_key("user1", 15)


def test_owner_key_prefix_does_not_match_longer_owner() -> None:
    """Test that the prefix of user1 does not select keys of user10."""
    prefix = owner_key_prefix("user1")

    assert search_cache_key("user1", "paris").startswith(prefix)
    assert not search_cache_key("user10", "paris").startswith(prefix)
    assert not list_cache_key("user10", 15).startswith(prefix)


def test_is_empty_query() -> None:
    """Test detection of searches that should short-circuit."""
    assert is_empty_query("")
    assert is_empty_query("   ")
    assert is_empty_query(None)
    assert not is_empty_query("   ", 3)
    assert not is_empty_query("paris")
    assert normalize_query_text("  Hello World ") == "hello world"


# Text Processing Tests


def test_significant_words() -> None:
    """Test that words of two characters or fewer are dropped."""
    assert significant_words("A day at the Beach") == ["day", "the", "beach"]
    assert significant_words("to be or") == []
    assert significant_words("") == []


def test_contains_is_case_insensitive() -> None:
    """Test the substring helpers."""
    assert contains("Weekend in Paris", "paris")
    assert not contains("Weekend in Paris", "london")
    assert not contains("", "paris")
    assert any_contains(["travel", "France"], "fran")
    assert not any_contains([], "fran")


# HTTP Tests


def _client(responses: List[httpx.Response], seen: List[httpx.Request]) -> httpx.AsyncClient:
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return queue.pop(0)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_safe_api_request_returns_json() -> None:
    """Test a successful request."""
    seen: List[httpx.Request] = []
    async with _client([httpx.Response(200, json={"count": 3})], seen) as client:
        result = await safe_api_request(client, "GET", "http://store/records/count")

    assert result == {"count": 3}
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_safe_api_request_empty_body() -> None:
    """Test that a 204 response yields None."""
    seen: List[httpx.Request] = []
    async with _client([httpx.Response(204)], seen) as client:
        assert await safe_api_request(client, "PUT", "http://store/records/r1") is None


@pytest.mark.asyncio
async def test_safe_api_request_single_attempt_by_default() -> None:
    """Test that server errors are not retried unless configured."""
    seen: List[httpx.Request] = []
    async with _client([httpx.Response(503), httpx.Response(200, json={})], seen) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await safe_api_request(client, "GET", "http://store/records")

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_safe_api_request_retries_server_errors() -> None:
    """Test retrying with backoff when more attempts are allowed."""
    seen: List[httpx.Request] = []
    responses = [httpx.Response(500), httpx.Response(429), httpx.Response(200, json={"ok": True})]
    async with _client(responses, seen) as client:
        result = await safe_api_request(
            client, "GET", "http://store/records", max_retries=3, retry_delay=0
        )

    assert result == {"ok": True}
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_safe_api_request_client_error_not_retried() -> None:
    """Test that 4xx errors other than 429 are raised immediately."""
    seen: List[httpx.Request] = []
    async with _client([httpx.Response(404), httpx.Response(200, json={})], seen) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await safe_api_request(client, "GET", "http://store/records/x", max_retries=3, retry_delay=0)

    assert len(seen) == 1
