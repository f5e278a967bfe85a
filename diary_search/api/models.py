"""
API data models for the diary search service.

This module contains Pydantic models for diary records and for the request
and response data structures of the API endpoints.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_naive_utc(value: datetime) -> datetime:
    """
    Convert a timestamp to naive UTC, the form records are stored in.

    Aware values are shifted to UTC and stripped of their timezone; naive
    values are taken to be UTC already and returned unchanged.

    Args:
        value: Naive or timezone-aware datetime

    Returns:
        datetime: Naive UTC datetime
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=None)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """
    Normalize tags for storage.

    Lower-cases and trims every tag, drops empty ones and removes duplicates
    while keeping the first-seen order.

    Args:
        tags: Raw tag values

    Returns:
        List[str]: Normalized tags
    """
    normalized: List[str] = []
    for tag in tags or []:
        value = str(tag).strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


class LocationSnapshot(BaseModel):
    """
    Location captured when an entry was written.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        place_name: Reverse-geocoded place name (optional)
        locality: City or town (optional)
        country: Country name (optional)
    """
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    place_name: Optional[str] = None
    locality: Optional[str] = None
    country: Optional[str] = None


class WeatherSnapshot(BaseModel):
    """
    Weather conditions captured when an entry was written.

    Attributes:
        description: Short human-readable condition (e.g. "light rain")
        temperature_c: Temperature in degrees Celsius (optional)
        humidity: Relative humidity percentage (optional)
        icon: Provider icon code (optional)
    """
    description: str
    temperature_c: Optional[float] = None
    humidity: Optional[int] = Field(default=None, ge=0, le=100)
    icon: Optional[str] = None


class RecordContent(BaseModel):
    """
    Mutable content shared by drafts, updates and stored records.

    Attributes:
        occurred_at: When the described event took place
        title: Entry title
        body: Entry text
        tags: Case-normalized tags
        category_rating: Mood rating from 1 (very happy) to 5 (very sad)
        attachment_refs: References to attached media in the object store
        location: Location snapshot (optional)
        weather: Weather snapshot (optional)
    """
    occurred_at: datetime
    title: str = ""
    body: str = ""
    tags: List[str] = Field(default_factory=list)
    category_rating: int = Field(default=3, ge=1, le=5)
    attachment_refs: List[str] = Field(default_factory=list)
    location: Optional[LocationSnapshot] = None
    weather: Optional[WeatherSnapshot] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_validator("occurred_at")
    @classmethod
    def _normalize_occurred_at(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class RecordDraft(RecordContent):
    """
    Payload for creating a record; the store assigns the id.

    Attributes:
        owner_id: Owning user
        created_at: Creation timestamp, defaults to now
    """
    owner_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class RecordUpdate(RecordContent):
    """Payload for replacing the mutable content of an existing record."""
    pass


class Record(RecordContent):
    """
    A stored diary record.

    Attributes:
        id: Store-assigned identifier, immutable
        owner_id: Owning user, immutable
        created_at: Creation timestamp, immutable
    """
    id: str
    owner_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    def with_update(self, update: RecordUpdate) -> "Record":
        """
        Return a copy with the mutable content replaced by ``update``.

        Args:
            update: New content

        Returns:
            Record: Updated record keeping id, owner and creation time
        """
        return Record(id=self.id, owner_id=self.owner_id, created_at=self.created_at, **update.model_dump())


class EntryDraftRequest(RecordContent):
    """Request body for creating an entry; the owner comes from the path."""
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v) if v is not None else None


class EntryBatchCreateRequest(BaseModel):
    """Request body for creating several entries at once."""
    entries: List[EntryDraftRequest] = Field(..., min_length=1)


class EntryBatchDeleteRequest(BaseModel):
    """Request body for deleting several entries at once."""
    ids: List[str] = Field(..., min_length=1)


class ResultSource(str, Enum):
    """Where the records of a read came from."""
    CACHE = "cache"
    STORE = "store"
    STALE_CACHE = "stale_cache"


class EntryListResponse(BaseModel):
    """
    Response for list and calendar reads.

    Attributes:
        records: Records in occurred_at descending order
        source: Whether the records came from the cache or the store
        stale: True when the store failed and an expired cache entry was used
    """
    records: List[Record]
    source: ResultSource
    stale: bool = False


class CreatedResponse(BaseModel):
    """Identifiers assigned to newly created entries."""
    ids: List[str]


class DeletedResponse(BaseModel):
    """
    Records removed by a delete.

    Attributes:
        records: The deleted records
        failed_attachment_refs: Attachments the object store failed to delete
    """
    records: List[Record]
    failed_attachment_refs: List[str] = Field(default_factory=list)


class CountResponse(BaseModel):
    """Number of entries owned by a user."""
    owner_id: str
    count: int


class TagsResponse(BaseModel):
    """Most recently used tags."""
    tags: List[str]


class SearchResponse(BaseModel):
    """
    Model representing the complete search response from the API.

    Attributes:
        query: The search query string
        rating: The category filter applied (optional)
        strategy: The matching strategy used
        results: Matching records
        total_results: Number of results returned
    """
    query: str
    rating: Optional[int] = None
    strategy: str
    results: List[Record]
    total_results: int


class SuggestionsResponse(BaseModel):
    """Type-ahead suggestions for a partial query."""
    query: str
    suggestions: List[str]


class ErrorResponse(BaseModel):
    """
    Model representing an error response from the API.

    Attributes:
        status_code: HTTP status code
        message: Human-readable error message
        details: Additional error details (optional)
    """
    status_code: int
    message: str
    details: Optional[Any] = None


class CacheStatsResponse(BaseModel):
    """Statistics for every cache of the session."""
    caches: Dict[str, Dict[str, Any]]
