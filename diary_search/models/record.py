"""Diary record model for SQLAlchemy."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from diary_search.core.database import Base


def _new_id() -> str:
    return uuid4().hex


class DiaryRecord(Base):
    """SQLAlchemy model for diary entries."""

    __tablename__ = "entries"

    id = Column(String(32), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False, index=True)
    occurred_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    title = Column(String, nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    category_rating = Column(Integer, nullable=False, default=3)
    attachment_refs = Column(JSON, nullable=False, default=list)
    location = Column(JSON, nullable=True)
    weather = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_entries_owner_occurred", "owner_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        """Return a string representation of the record.

        Returns:
            str: String representation of the record.
        """
        return (
            f"<DiaryRecord(id={self.id}, owner_id={self.owner_id}, "
            f"title='{self.title[:50]}', occurred_at={self.occurred_at})>"
        )
