"""
Tests for owner-scoped cache invalidation.

This module checks that every mutation of an owner's records purges all of
that owner's cached queries, in every cache, and nothing else.
"""
from datetime import datetime
from typing import TYPE_CHECKING

import pytest

from diary_search.api.models import RecordDraft, RecordUpdate
from diary_search.services.cache_service import MISS, TTLCache
from diary_search.services.invalidation_service import InvalidationHub
from diary_search.services.record_store import InMemoryRecordStore, MutationFailure
from diary_search.services.session_service import DiarySession
from diary_search.utils.cache import date_cache_key, list_cache_key, search_cache_key

if TYPE_CHECKING:
    from pytest_mock.plugin import MockerFixture


@pytest.fixture
def hub(list_cache: TTLCache, search_cache: TTLCache) -> InvalidationHub:
    """Provide a hub over the list and search caches."""
    return InvalidationHub([list_cache, search_cache])


def _fill(list_cache: TTLCache, search_cache: TTLCache) -> None:
    list_cache.put(list_cache_key("user1", 15), ["r1"])
    list_cache.put(date_cache_key("user1", datetime(2024, 5, 3)), ["r1"])
    list_cache.put(list_cache_key("user10", 15), ["x"])
    search_cache.put(search_cache_key("user1", "paris"), ["r1", "r2"])
    search_cache.put(search_cache_key("user2", "paris"), ["r5"])


def test_update_purges_owner_search_results(hub: InvalidationHub, list_cache: TTLCache, search_cache: TTLCache) -> None:
    """Test that an update removes the owner's cached searches."""
    _fill(list_cache, search_cache)

    hub.on_record_updated("user1")

    assert search_cache.get("user1:search:paris:none") is MISS
    assert "user1:search:paris:none" not in search_cache


def test_purge_covers_every_cache_and_only_the_owner(hub: InvalidationHub, list_cache: TTLCache, search_cache: TTLCache) -> None:
    """Test that all of the owner's keys go and other owners' keys stay."""
    _fill(list_cache, search_cache)

    removed = hub.on_record_created("user1")

    assert removed == 3
    assert list_cache.keys() == ["user10:list:15"]
    assert search_cache.keys() == ["user2:search:paris:none"]


def test_batch_notification_purges_each_owner_once(hub: InvalidationHub, list_cache: TTLCache, search_cache: TTLCache, mocker: "MockerFixture") -> None:
    """Test that repeated owners in a batch are purged once."""
    _fill(list_cache, search_cache)
    spy = mocker.spy(hub, "purge_owner")

    hub.on_records_deleted(["user1", "user2", "user1"])

    assert spy.call_count == 2
    assert list_cache.keys() == ["user10:list:15"]
    assert len(search_cache) == 0


def test_register_is_idempotent(list_cache: TTLCache, search_cache: TTLCache) -> None:
    """Test registering and unregistering caches."""
    hub = InvalidationHub()
    hub.register(list_cache)
    hub.register(list_cache)
    hub.register(search_cache)
    assert hub.caches == [list_cache, search_cache]

    hub.unregister(list_cache)
    list_cache.put("user1:list:15", ["r1"])
    hub.on_record_deleted("user1")
    assert "user1:list:15" in list_cache


def test_purge_all(hub: InvalidationHub, list_cache: TTLCache, search_cache: TTLCache) -> None:
    """Test that purge_all empties every registered cache."""
    _fill(list_cache, search_cache)

    hub.purge_all()

    assert len(list_cache) == 0
    assert len(search_cache) == 0


@pytest.mark.asyncio
async def test_created_entry_is_visible_to_next_search(session: DiarySession) -> None:
    """Test that a search after a create reflects the new entry."""
    before = await session.search_engine.search("user1", "paris")
    assert [r.id for r in before] == ["r1", "r2"]

    new_id = await session.entries.create_entry(
        RecordDraft(owner_id="user1", occurred_at=datetime(2024, 5, 4, 9, 0), title="Back from Paris")
    )
    after = await session.search_engine.search("user1", "paris")

    assert [r.id for r in after] == [new_id, "r1", "r2"]


@pytest.mark.asyncio
async def test_updated_entry_is_visible_to_next_list(session: DiarySession) -> None:
    """Test that a list after an update reflects the new content."""
    await session.entries.get_entries("user1")

    await session.entries.update_entry(
        "user1", "r3", RecordUpdate(occurred_at=datetime(2024, 5, 1, 8, 30), title="Evening run")
    )
    response = await session.entries.get_entries("user1")

    assert response.source.value == "store"
    assert [r.title for r in response.records if r.id == "r3"] == ["Evening run"]


@pytest.mark.asyncio
async def test_failed_mutation_keeps_cache(session: DiarySession, store: InMemoryRecordStore, mocker: "MockerFixture") -> None:
    """Test that a rejected write does not purge anything."""
    await session.search_engine.search("user1", "paris")
    await session.entries.get_entries("user1")
    mocker.patch.object(store, "create", side_effect=MutationFailure("rejected"))

    with pytest.raises(MutationFailure):
        await session.entries.create_entry(
            RecordDraft(owner_id="user1", occurred_at=datetime(2024, 5, 4), title="Lost entry")
        )

    assert "user1:search:paris:none" in session.search_cache
    assert "user1:list:15" in session.list_cache
