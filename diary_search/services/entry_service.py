"""
Entry service module for the diary search service.

This module serves the list and calendar views through the list cache and is
the mutation pathway for diary entries: every successful write is reported to
the invalidation hub before control returns to the caller, and deletes cascade
to the attachments in the object store.
"""
import asyncio
import calendar
import logging
from datetime import date, datetime, time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..api.models import (
    as_naive_utc,
    DeletedResponse,
    EntryListResponse,
    Record,
    RecordDraft,
    RecordUpdate,
    ResultSource,
)
from ..utils.cache import (
    DateLike,
    date_cache_key,
    list_cache_key,
    month_cache_key,
    recent_tags_cache_key,
)
from .cache_service import TTLCache
from .invalidation_service import InvalidationHub
from .record_store import (
    FetchFailure,
    ObjectStoreClient,
    OwnershipError,
    RecordNotFoundError,
    RecordStoreClient,
)

# Setup logging
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15
DEFAULT_RECENT_TAGS_WINDOW = 100
DEFAULT_RECENT_TAGS_LIMIT = 10


def calendar_date(value: DateLike) -> date:
    """
    Calendar day of ``value`` in stored (naive UTC) time.

    Args:
        value: Date, naive UTC datetime or timezone-aware datetime

    Returns:
        date: The day the value falls on in UTC
    """
    if isinstance(value, datetime):
        return as_naive_utc(value).date()
    return value


def day_bounds(day: DateLike) -> Tuple[datetime, datetime]:
    """
    First and last instant of the calendar day containing ``day``.

    Bounds are naive UTC, matching stored timestamps.

    Args:
        day: Date or datetime; aware datetimes are shifted to UTC first

    Returns:
        Tuple[datetime, datetime]: Inclusive start and end
    """
    day = calendar_date(day)
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def month_bounds(month: DateLike) -> Tuple[datetime, datetime]:
    """
    First and last instant of the calendar month containing ``month``.

    Args:
        month: Any date or datetime inside the month

    Returns:
        Tuple[datetime, datetime]: Inclusive naive UTC start and end
    """
    month = calendar_date(month)
    last_day = calendar.monthrange(month.year, month.month)[1]
    return (
        datetime(month.year, month.month, 1),
        datetime.combine(date(month.year, month.month, last_day), time.max),
    )


class EntryService:
    """
    Cached entry listings and entry mutations for diary owners.

    Attributes:
        store: Backing record store
        cache: List and calendar cache
        hub: Invalidation hub notified after every successful write
        object_store: Attachment store used for cascading deletes (optional)
    """

    def __init__(
        self,
        store: RecordStoreClient,
        cache: TTLCache,
        hub: InvalidationHub,
        object_store: Optional[ObjectStoreClient] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        recent_tags_window: int = DEFAULT_RECENT_TAGS_WINDOW,
        recent_tags_limit: int = DEFAULT_RECENT_TAGS_LIMIT,
    ) -> None:
        self.store = store
        self.cache = cache
        self.hub = hub
        self.object_store = object_store
        self.page_size = page_size
        self.recent_tags_window = recent_tags_window
        self.recent_tags_limit = recent_tags_limit

    async def _read_through(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Tuple[Any, ResultSource]:
        """
        Serve ``key`` from the cache or the store, degrading to stale data.

        When the store fails and an expired entry exists for ``key``, the
        expired payload is returned instead of the error.

        Args:
            key: Cache key
            loader: Coroutine function fetching fresh data

        Returns:
            Tuple[Any, ResultSource]: Payload and where it came from

        Raises:
            FetchFailure: If the store fails and nothing is cached for ``key``
        """
        fresh = self.cache.is_fresh(key)
        try:
            payload = await self.cache.load(key, loader)
        except FetchFailure:
            stale = self.cache.peek(key)
            if stale is None:
                raise
            logger.warning(f"Record store unavailable, serving stale cache for key: {key}")
            return stale.payload, ResultSource.STALE_CACHE
        return payload, ResultSource.CACHE if fresh else ResultSource.STORE

    async def _list(self, key: str, loader: Callable[[], Awaitable[List[Record]]]) -> EntryListResponse:
        records, source = await self._read_through(key, loader)
        return EntryListResponse(records=records, source=source, stale=source == ResultSource.STALE_CACHE)

    async def get_entries(self, owner_id: str, limit: Optional[int] = None, offset: int = 0) -> EntryListResponse:
        """
        Get a page of an owner's latest entries.

        Args:
            owner_id: Owning user
            limit: Page size, the configured default if omitted
            offset: Number of newest entries to skip

        Returns:
            EntryListResponse: Entries ordered by occurred_at descending
        """
        limit = self.page_size if limit is None else limit
        return await self._list(
            list_cache_key(owner_id, limit, offset),
            lambda: self.store.fetch_by_owner(owner_id, limit, offset),
        )

    async def get_entries_for_date(self, owner_id: str, day: DateLike) -> EntryListResponse:
        """Get the entries of one calendar day."""
        day = calendar_date(day)
        start, end = day_bounds(day)
        return await self._list(
            date_cache_key(owner_id, day),
            lambda: self.store.fetch_by_owner_and_date_range(owner_id, start, end),
        )

    async def get_entries_for_month(self, owner_id: str, month: DateLike) -> EntryListResponse:
        """Get the entries of one calendar month."""
        month = calendar_date(month)
        start, end = month_bounds(month)
        return await self._list(
            month_cache_key(owner_id, month),
            lambda: self.store.fetch_by_owner_and_date_range(owner_id, start, end),
        )

    async def get_recent_tags(self, owner_id: str, limit: Optional[int] = None) -> List[str]:
        """
        Get the tags an owner used most recently.

        Tags are ranked by the latest occurred_at of the recent entries that
        carry them.

        Args:
            owner_id: Owning user
            limit: Maximum number of tags, the configured default if omitted

        Returns:
            List[str]: Tags, most recently used first
        """
        limit = self.recent_tags_limit if limit is None else limit

        async def collect() -> List[str]:
            recent = await self.store.fetch_by_owner(owner_id, self.recent_tags_window)
            last_used: Dict[str, datetime] = {}
            for record in recent:
                for tag in record.tags:
                    if tag not in last_used or record.occurred_at > last_used[tag]:
                        last_used[tag] = record.occurred_at
            return sorted(last_used, key=lambda tag: last_used[tag], reverse=True)[:limit]

        tags, _ = await self._read_through(recent_tags_cache_key(owner_id, limit), collect)
        return tags

    async def count_entries(self, owner_id: str) -> int:
        return await self.store.count(owner_id)

    async def get_entry(self, owner_id: str, record_id: str) -> Record:
        """
        Load one entry and check that it belongs to ``owner_id``.

        Raises:
            RecordNotFoundError: If the entry does not exist
            OwnershipError: If the entry belongs to someone else
        """
        record = await self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        if record.owner_id != owner_id:
            raise OwnershipError(f"Record {record_id} does not belong to owner {owner_id}")
        return record

    async def create_entry(self, draft: RecordDraft) -> str:
        """
        Store a new entry.

        Args:
            draft: Entry content and owner

        Returns:
            str: Assigned id
        """
        record_id = await self.store.create(draft)
        self.hub.on_record_created(draft.owner_id)
        logger.info(f"Created entry {record_id} for owner {draft.owner_id}")
        return record_id

    async def create_entries(self, drafts: Sequence[RecordDraft]) -> List[str]:
        """Store several entries in one batch."""
        record_ids = await self.store.create_many(drafts)
        self.hub.on_records_created(draft.owner_id for draft in drafts)
        logger.info(f"Created {len(record_ids)} entries")
        return record_ids

    async def update_entry(self, owner_id: str, record_id: str, update: RecordUpdate) -> Record:
        """
        Replace the content of an entry.

        Args:
            owner_id: Owner performing the update
            record_id: Entry to update
            update: New content

        Returns:
            Record: The updated entry
        """
        existing = await self.get_entry(owner_id, record_id)
        updated = existing.with_update(update)
        await self.store.update(updated)
        self.hub.on_record_updated(owner_id)
        logger.info(f"Updated entry {record_id} for owner {owner_id}")
        return updated

    async def delete_entry(self, owner_id: str, record_id: str) -> DeletedResponse:
        """
        Delete an entry and then its attachments.

        Args:
            owner_id: Owner performing the delete
            record_id: Entry to delete

        Returns:
            DeletedResponse: The deleted entry and any attachments left behind
        """
        await self.get_entry(owner_id, record_id)
        record = await self.store.delete(record_id)
        self.hub.on_record_deleted(record.owner_id)
        logger.info(f"Deleted entry {record_id} for owner {owner_id}")
        failed = await self._delete_attachments([record])
        return DeletedResponse(records=[record], failed_attachment_refs=failed)

    async def delete_entries(self, owner_id: str, record_ids: Sequence[str]) -> DeletedResponse:
        """
        Delete several entries and then their attachments.

        Unknown ids are skipped. Nothing is deleted if any id belongs to
        another owner.

        Args:
            owner_id: Owner performing the delete
            record_ids: Entries to delete

        Returns:
            DeletedResponse: The deleted entries and any attachments left behind
        """
        owned: List[str] = []
        for record_id in record_ids:
            try:
                await self.get_entry(owner_id, record_id)
            except RecordNotFoundError:
                logger.warning(f"Skipping unknown entry {record_id}")
                continue
            owned.append(record_id)

        if not owned:
            return DeletedResponse(records=[])

        records = await self.store.delete_many(owned)
        self.hub.on_records_deleted(record.owner_id for record in records)
        logger.info(f"Deleted {len(records)} entries for owner {owner_id}")
        failed = await self._delete_attachments(records)
        return DeletedResponse(records=records, failed_attachment_refs=failed)

    async def _delete_attachments(self, records: Sequence[Record]) -> List[str]:
        """
        Delete the attachments of removed entries.

        Failures are logged and reported, never raised: the entries are
        already gone.

        Returns:
            List[str]: References that could not be deleted
        """
        refs = [ref for record in records for ref in record.attachment_refs]
        if not refs or self.object_store is None:
            return []

        outcomes = await asyncio.gather(
            *(self.object_store.delete(ref) for ref in refs), return_exceptions=True
        )
        failed = []
        for ref, outcome in zip(refs, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Error deleting attachment {ref}: {str(outcome)}")
                failed.append(ref)
        return failed
