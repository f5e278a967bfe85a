"""Record store backed by a SQL database through SQLAlchemy."""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.models import Record, RecordDraft
from ..models.record import DiaryRecord
from .record_store import (
    FetchFailure,
    MutationFailure,
    OwnershipError,
    RecordNotFoundError,
    RecordStoreClient,
)

logger = logging.getLogger(__name__)


def _to_record(row: DiaryRecord) -> Record:
    return Record.model_validate(row)


class SqlRecordStore(RecordStoreClient):
    """Record store using one short-lived SQLAlchemy session per call.

    Each call opens a session from ``session_factory``, commits writes
    immediately and closes the session before returning.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the store.

        Args:
            session_factory: Callable returning a new SQLAlchemy session.
        """
        self.session_factory = session_factory

    def _newest_first(self, db: Session, owner_id: str):
        return (
            db.query(DiaryRecord)
            .filter(DiaryRecord.owner_id == owner_id)
            .order_by(DiaryRecord.occurred_at.desc(), DiaryRecord.created_at.desc())
        )

    async def fetch_by_owner(self, owner_id: str, limit: int, offset: int = 0) -> List[Record]:
        try:
            with self.session_factory() as db:
                rows = self._newest_first(db, owner_id).offset(offset).limit(limit).all()
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching entries for owner {owner_id}: {str(e)}", exc_info=True)
            raise FetchFailure(f"Could not fetch entries for owner {owner_id}") from e

    async def fetch_by_owner_and_date_range(
        self, owner_id: str, start: datetime, end: datetime
    ) -> List[Record]:
        try:
            with self.session_factory() as db:
                rows = (
                    self._newest_first(db, owner_id)
                    .filter(DiaryRecord.occurred_at >= start, DiaryRecord.occurred_at <= end)
                    .all()
                )
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching entries between {start} and {end}: {str(e)}", exc_info=True)
            raise FetchFailure(f"Could not fetch entries for owner {owner_id}") from e

    async def get(self, record_id: str) -> Optional[Record]:
        try:
            with self.session_factory() as db:
                row = db.get(DiaryRecord, record_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error loading entry {record_id}: {str(e)}", exc_info=True)
            raise FetchFailure(f"Could not load entry {record_id}") from e

    async def create(self, draft: RecordDraft) -> str:
        return (await self.create_many([draft]))[0]

    async def create_many(self, drafts: Sequence[RecordDraft]) -> List[str]:
        try:
            with self.session_factory() as db:
                rows = [DiaryRecord(**draft.model_dump()) for draft in drafts]
                db.add_all(rows)
                db.commit()
                return [row.id for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error adding {len(drafts)} entries: {str(e)}", exc_info=True)
            raise MutationFailure("Could not add entries") from e

    async def update(self, record: Record) -> None:
        try:
            with self.session_factory() as db:
                row = db.get(DiaryRecord, record.id)
                if row is None:
                    raise RecordNotFoundError(record.id)
                if row.owner_id != record.owner_id:
                    raise OwnershipError(f"Record {record.id} cannot change owner")
                content = record.model_dump(exclude={"id", "owner_id", "created_at"})
                for field, value in content.items():
                    setattr(row, field, value)
                db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating entry {record.id}: {str(e)}", exc_info=True)
            raise MutationFailure(f"Could not update entry {record.id}") from e

    async def delete(self, record_id: str) -> Record:
        deleted = await self.delete_many([record_id])
        if not deleted:
            raise RecordNotFoundError(record_id)
        return deleted[0]

    async def delete_many(self, record_ids: Sequence[str]) -> List[Record]:
        try:
            with self.session_factory() as db:
                rows = db.query(DiaryRecord).filter(DiaryRecord.id.in_(list(record_ids))).all()
                deleted = [_to_record(row) for row in rows]
                for row in rows:
                    db.delete(row)
                db.commit()
                return deleted
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {len(record_ids)} entries: {str(e)}", exc_info=True)
            raise MutationFailure("Could not delete entries") from e

    async def count(self, owner_id: str) -> int:
        try:
            with self.session_factory() as db:
                return (
                    db.query(func.count(DiaryRecord.id))
                    .filter(DiaryRecord.owner_id == owner_id)
                    .scalar()
                ) or 0
        except SQLAlchemyError as e:
            logger.error(f"Error counting entries for owner {owner_id}: {str(e)}", exc_info=True)
            raise FetchFailure(f"Could not count entries for owner {owner_id}") from e
