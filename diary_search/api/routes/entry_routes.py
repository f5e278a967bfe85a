"""
Entry-related API routes for the diary search service.

This module contains route definitions for listing, calendar lookups, recent
tags and the create, update and delete operations on diary entries.
"""
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_diary_session
from ...api.models import (
    CountResponse,
    CreatedResponse,
    DeletedResponse,
    EntryBatchCreateRequest,
    EntryBatchDeleteRequest,
    EntryDraftRequest,
    EntryListResponse,
    Record,
    RecordDraft,
    RecordUpdate,
    TagsResponse,
)
from ...services.session_service import DiarySession

# Create router
router = APIRouter(
    prefix="/api/owners/{owner_id}",
    tags=["entries"],
    responses={404: {"description": "Not found"}},
)

# Set up logging
logger = logging.getLogger(__name__)


def _draft(owner_id: str, entry: EntryDraftRequest) -> RecordDraft:
    data = entry.model_dump(exclude={"created_at"})
    if entry.created_at is not None:
        data["created_at"] = entry.created_at
    return RecordDraft(owner_id=owner_id, **data)


@router.get("/entries", response_model=EntryListResponse)
async def list_entries(
    owner_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: DiarySession = Depends(get_diary_session),
) -> EntryListResponse:
    """
    List an owner's latest entries, newest first.

    Args:
        owner_id: Owning user
        limit: Page size (optional)
        offset: Number of newest entries to skip
        session: Diary session

    Returns:
        EntryListResponse: Entries and where they came from
    """
    return await session.entries.get_entries(owner_id, limit=limit, offset=offset)


@router.get("/entries/count", response_model=CountResponse)
async def count_entries(
    owner_id: str,
    session: DiarySession = Depends(get_diary_session),
) -> CountResponse:
    """Return how many entries an owner has."""
    return CountResponse(owner_id=owner_id, count=await session.entries.count_entries(owner_id))


@router.get("/entries/{record_id}", response_model=Record)
async def get_entry(
    owner_id: str,
    record_id: str,
    session: DiarySession = Depends(get_diary_session),
) -> Record:
    """Return one entry."""
    return await session.entries.get_entry(owner_id, record_id)


@router.post("/entries", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    owner_id: str,
    entry: EntryDraftRequest,
    session: DiarySession = Depends(get_diary_session),
) -> CreatedResponse:
    """
    Create an entry.

    Args:
        owner_id: Owning user
        entry: Entry content
        session: Diary session

    Returns:
        CreatedResponse: The assigned id
    """
    record_id = await session.entries.create_entry(_draft(owner_id, entry))
    return CreatedResponse(ids=[record_id])


@router.post("/entries/batch", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_entries(
    owner_id: str,
    batch: EntryBatchCreateRequest,
    session: DiarySession = Depends(get_diary_session),
) -> CreatedResponse:
    """Create several entries in one batch."""
    record_ids = await session.entries.create_entries([_draft(owner_id, entry) for entry in batch.entries])
    return CreatedResponse(ids=record_ids)


@router.put("/entries/{record_id}", response_model=Record)
async def update_entry(
    owner_id: str,
    record_id: str,
    update: RecordUpdate,
    session: DiarySession = Depends(get_diary_session),
) -> Record:
    """Replace the content of an entry."""
    return await session.entries.update_entry(owner_id, record_id, update)


@router.delete("/entries/{record_id}", response_model=DeletedResponse)
async def delete_entry(
    owner_id: str,
    record_id: str,
    session: DiarySession = Depends(get_diary_session),
) -> DeletedResponse:
    """Delete an entry together with its attachments."""
    return await session.entries.delete_entry(owner_id, record_id)


@router.post("/entries/batch-delete", response_model=DeletedResponse)
async def delete_entries(
    owner_id: str,
    batch: EntryBatchDeleteRequest,
    session: DiarySession = Depends(get_diary_session),
) -> DeletedResponse:
    """Delete several entries together with their attachments."""
    return await session.entries.delete_entries(owner_id, batch.ids)


@router.get("/calendar/day/{day}", response_model=EntryListResponse)
async def entries_for_day(
    owner_id: str,
    day: date,
    session: DiarySession = Depends(get_diary_session),
) -> EntryListResponse:
    """Return the entries of one calendar day."""
    return await session.entries.get_entries_for_date(owner_id, day)


@router.get("/calendar/month/{year}/{month}", response_model=EntryListResponse)
async def entries_for_month(
    owner_id: str,
    year: int = Path(..., ge=1, le=9999),
    month: int = Path(..., ge=1, le=12),
    session: DiarySession = Depends(get_diary_session),
) -> EntryListResponse:
    """Return the entries of one calendar month."""
    return await session.entries.get_entries_for_month(owner_id, datetime(year, month, 1))


@router.get("/tags/recent", response_model=TagsResponse)
async def recent_tags(
    owner_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    session: DiarySession = Depends(get_diary_session),
) -> TagsResponse:
    """Return the tags an owner used most recently."""
    return TagsResponse(tags=await session.entries.get_recent_tags(owner_id, limit=limit))
