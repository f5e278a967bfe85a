"""
Record store client interface for the diary search service.

This module defines the asynchronous contract the caches and the search
engine use to reach the backing document store, the error types every
adapter raises, and a dictionary-backed adapter used for embedding and tests.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

from ..api.models import Record, RecordDraft

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Base class for record store failures."""


class FetchFailure(RecordStoreError):
    """A read against the record store failed."""


class MutationFailure(RecordStoreError):
    """A create, update or delete against the record store failed."""


class RecordNotFoundError(RecordStoreError):
    """The requested record does not exist."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class OwnershipError(RecordStoreError):
    """A record was accessed or modified on behalf of another owner."""


class ObjectStoreClient(Protocol):
    """Binary object store holding entry attachments."""

    async def delete(self, ref: str) -> None:
        ...


def sort_newest_first(records: Sequence[Record]) -> List[Record]:
    """
    Order records by occurred_at descending, newest creation first on ties.

    Args:
        records: Records in any order

    Returns:
        List[Record]: Sorted copy
    """
    return sorted(records, key=lambda r: (r.occurred_at, r.created_at), reverse=True)


class RecordStoreClient(ABC):
    """
    Asynchronous access to the backing record store.

    Every read raises ``FetchFailure`` and every write raises
    ``MutationFailure`` when the backend fails. Implementations never retry
    on their own unless configured to.
    """

    @abstractmethod
    async def fetch_by_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[Record]:
        """
        Fetch an owner's records ordered by occurred_at descending.

        Args:
            owner_id: Owning user
            limit: Maximum number of records
            offset: Number of newest records to skip

        Returns:
            List[Record]: Records, newest first
        """

    @abstractmethod
    async def fetch_by_owner_and_date_range(
        self, owner_id: str, start: datetime, end: datetime
    ) -> List[Record]:
        """
        Fetch an owner's records whose occurred_at lies in ``[start, end]``.

        Args:
            owner_id: Owning user
            start: Inclusive lower bound
            end: Inclusive upper bound

        Returns:
            List[Record]: Records, newest first
        """

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Record]:
        """Fetch one record by id, or None if it does not exist."""

    @abstractmethod
    async def create(self, draft: RecordDraft) -> str:
        """Store a new record and return its assigned id."""

    @abstractmethod
    async def create_many(self, drafts: Sequence[RecordDraft]) -> List[str]:
        """Store several records in one batch and return their ids in order."""

    @abstractmethod
    async def update(self, record: Record) -> None:
        """Replace the content of an existing record."""

    @abstractmethod
    async def delete(self, record_id: str) -> Record:
        """Delete a record and return it so attachments can be cleaned up."""

    @abstractmethod
    async def delete_many(self, record_ids: Sequence[str]) -> List[Record]:
        """Delete several records; unknown ids are skipped."""

    @abstractmethod
    async def count(self, owner_id: str) -> int:
        """Return the number of records an owner has."""


class InMemoryRecordStore(RecordStoreClient):
    """
    Record store kept in a process-local dictionary.

    Returned records are copies, so callers cannot change stored state.
    """

    def __init__(self, records: Optional[Sequence[Record]] = None) -> None:
        self._records: Dict[str, Record] = {}
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    def _owned(self, owner_id: str) -> List[Record]:
        return [r for r in self._records.values() if r.owner_id == owner_id]

    async def fetch_by_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[Record]:
        ordered = sort_newest_first(self._owned(owner_id))
        return [r.model_copy(deep=True) for r in ordered[offset:offset + limit]]

    async def fetch_by_owner_and_date_range(
        self, owner_id: str, start: datetime, end: datetime
    ) -> List[Record]:
        matching = [r for r in self._owned(owner_id) if start <= r.occurred_at <= end]
        return [r.model_copy(deep=True) for r in sort_newest_first(matching)]

    async def get(self, record_id: str) -> Optional[Record]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, draft: RecordDraft) -> str:
        record_id = uuid4().hex
        self._records[record_id] = Record(id=record_id, **draft.model_dump())
        logger.debug(f"Created record {record_id} for owner {draft.owner_id}")
        return record_id

    async def create_many(self, drafts: Sequence[RecordDraft]) -> List[str]:
        return [await self.create(draft) for draft in drafts]

    async def update(self, record: Record) -> None:
        stored = self._records.get(record.id)
        if stored is None:
            raise RecordNotFoundError(record.id)
        if stored.owner_id != record.owner_id:
            raise OwnershipError(f"Record {record.id} cannot change owner")
        self._records[record.id] = Record(
            **{**record.model_dump(), "created_at": stored.created_at}
        )

    async def delete(self, record_id: str) -> Record:
        record = self._records.pop(record_id, None)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def delete_many(self, record_ids: Sequence[str]) -> List[Record]:
        return [self._records.pop(rid) for rid in record_ids if rid in self._records]

    async def count(self, owner_id: str) -> int:
        return len(self._owned(owner_id))
