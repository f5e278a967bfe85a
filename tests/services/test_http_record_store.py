"""
Tests for the HTTP record store client.

Requests are answered by an ``httpx.MockTransport`` standing in for the
remote document service.
"""
import json
from datetime import datetime
from typing import Any, Callable, Dict, List

import httpx
import pytest

from diary_search.api.models import Record, RecordDraft, ResultSource
from diary_search.services.cache_service import TTLCache
from diary_search.services.entry_service import EntryService
from diary_search.services.http_record_store import HttpRecordStore
from diary_search.services.invalidation_service import InvalidationHub
from diary_search.services.record_store import (
    FetchFailure,
    MutationFailure,
    OwnershipError,
    RecordNotFoundError,
)

Handler = Callable[[httpx.Request], httpx.Response]


def _record_json(record_id: str, title: str, occurred_at: str = "2024-05-03T10:00:00") -> Dict[str, Any]:
    return {
        "id": record_id,
        "owner_id": "user1",
        "created_at": occurred_at,
        "occurred_at": occurred_at,
        "title": title,
        "body": "",
        "tags": ["travel"],
        "category_rating": 2,
        "attachment_refs": [],
    }


def _store(handler: Handler, seen: List[httpx.Request]) -> HttpRecordStore:
    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return HttpRecordStore("http://records.local/", client=client)


@pytest.mark.asyncio
async def test_fetch_by_owner_sends_ordering_parameters() -> None:
    """Test the listing request and response decoding."""
    seen: List[httpx.Request] = []
    store = _store(lambda r: httpx.Response(200, json={"records": [_record_json("r1", "Paris")]}), seen)

    records = await store.fetch_by_owner("user1", 30, offset=15)

    assert [r.id for r in records] == ["r1"]
    assert isinstance(records[0], Record)
    params = seen[0].url.params
    assert seen[0].url.path == "/records"
    assert params["owner_id"] == "user1"
    assert params["order_by"] == "occurred_at"
    assert params["direction"] == "desc"
    assert params["limit"] == "30"
    assert params["offset"] == "15"


@pytest.mark.asyncio
async def test_fetch_by_date_range_sends_bounds() -> None:
    """Test that inclusive bounds are sent as ISO timestamps."""
    seen: List[httpx.Request] = []
    store = _store(lambda r: httpx.Response(200, json={"records": []}), seen)

    await store.fetch_by_owner_and_date_range("user1", datetime(2024, 5, 1), datetime(2024, 5, 31, 23, 59))

    assert seen[0].url.params["start"] == "2024-05-01T00:00:00"
    assert seen[0].url.params["end"] == "2024-05-31T23:59:00"


@pytest.mark.asyncio
async def test_read_errors_become_fetch_failures() -> None:
    """Test that server and connection errors surface as FetchFailure."""
    seen: List[httpx.Request] = []
    store = _store(lambda r: httpx.Response(503), seen)

    with pytest.raises(FetchFailure):
        await store.fetch_by_owner("user1", 10)
    assert len(seen) == 1

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailure):
        await _store(refuse, []).count("user1")


@pytest.mark.asyncio
async def test_get_missing_record_returns_none() -> None:
    """Test that a 404 on a single record is not an error."""
    store = _store(lambda r: httpx.Response(404), [])

    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_create_posts_draft() -> None:
    """Test creating one and several records."""
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/batch"):
            return httpx.Response(201, json={"ids": ["a", "b"]})
        return httpx.Response(201, json={"id": "new"})

    store = _store(handler, seen)
    draft = RecordDraft(owner_id="user1", occurred_at=datetime(2024, 5, 3), title="Paris")

    assert await store.create(draft) == "new"
    assert await store.create_many([draft, draft]) == ["a", "b"]
    assert json.loads(seen[0].content)["title"] == "Paris"
    assert len(json.loads(seen[1].content)["records"]) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, error",
    [(404, RecordNotFoundError), (403, OwnershipError), (500, MutationFailure), (400, MutationFailure)],
)
async def test_write_errors_are_mapped(status_code: int, error: type) -> None:
    """Test the mapping of write failures to record store errors."""
    store = _store(lambda r: httpx.Response(status_code), [])
    record = Record.model_validate(_record_json("r1", "Paris"))

    with pytest.raises(error):
        await store.update(record)


@pytest.mark.asyncio
async def test_delete_and_count() -> None:
    """Test deletes and counting."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            return httpx.Response(200, json=_record_json("r1", "Paris"))
        if request.url.path.endswith("/batch-delete"):
            return httpx.Response(200, json={"records": [_record_json("r2", "Run")]})
        return httpx.Response(200, json={"count": 7})

    store = _store(handler, [])

    assert (await store.delete("r1")).title == "Paris"
    assert [r.id for r in await store.delete_many(["r2", "r9"])] == ["r2"]
    assert await store.count("user1") == 7


@pytest.mark.asyncio
async def test_aclose_only_closes_own_client() -> None:
    """Test that a provided client is left open."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)))
    store = HttpRecordStore("http://records.local", client=client)

    await store.aclose()
    assert not client.is_closed

    owned = HttpRecordStore("http://records.local")
    await owned.aclose()
    assert owned.client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_read_responses_become_fetch_failures() -> None:
    """Test that undecodable or invalid payloads surface as FetchFailure."""
    maintenance = _store(lambda r: httpx.Response(200, text="<html>maintenance</html>"), [])
    with pytest.raises(FetchFailure):
        await maintenance.fetch_by_owner("user1", 10)
    with pytest.raises(FetchFailure):
        await maintenance.get("r1")

    invalid = _store(lambda r: httpx.Response(200, json={"records": [{"id": "r1", "title": "no owner"}]}), [])
    with pytest.raises(FetchFailure):
        await invalid.fetch_by_owner("user1", 10)


@pytest.mark.asyncio
async def test_malformed_write_response_becomes_mutation_failure() -> None:
    """Test that a write answered without the expected fields fails cleanly."""
    store = _store(lambda r: httpx.Response(201, json={"unexpected": True}), [])
    draft = RecordDraft(owner_id="user1", occurred_at=datetime(2024, 5, 3), title="Paris")

    with pytest.raises(MutationFailure):
        await store.create(draft)


@pytest.mark.asyncio
async def test_aware_timestamps_are_stored_as_naive_utc() -> None:
    """Test that offsets in remote payloads are converted to UTC."""
    payload = {"records": [_record_json("r1", "Paris", occurred_at="2024-05-03T12:00:00+02:00")]}
    store = _store(lambda r: httpx.Response(200, json=payload), [])

    records = await store.fetch_by_owner("user1", 10)

    assert records[0].occurred_at == datetime(2024, 5, 3, 10)
    assert records[0].occurred_at.tzinfo is None
    assert records[0].created_at.tzinfo is None


@pytest.mark.asyncio
async def test_maintenance_page_falls_back_to_stale_listing(list_cache: TTLCache, clock) -> None:
    """Test that a malformed response still lets the list path serve stale data."""
    responses = [
        httpx.Response(200, json={"records": [_record_json("r1", "Paris")]}),
        httpx.Response(200, text="<html>maintenance</html>"),
    ]
    store = _store(lambda r: responses.pop(0), [])
    service = EntryService(store, list_cache, InvalidationHub([list_cache]))

    await service.get_entries("user1")
    clock.advance(601)
    response = await service.get_entries("user1")

    assert response.source == ResultSource.STALE_CACHE
    assert [r.id for r in response.records] == ["r1"]
