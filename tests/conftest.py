"""
Pytest configuration file for the diary search service.

This module defines fixtures and configuration for pytest tests.
"""
import os
import sys
import logging
from datetime import datetime
from typing import Callable, Generator, List, Optional, TYPE_CHECKING
from pathlib import Path

# Keep tests away from the on-disk database before settings are loaded
os.environ.setdefault("RECORD_STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from diary_search.api.models import Record
from diary_search.core.config import Settings
from diary_search.main import create_app
from diary_search.services.cache_service import TTLCache
from diary_search.services.record_store import InMemoryRecordStore
from diary_search.services.session_service import DiarySession

if TYPE_CHECKING:
    from _pytest.fixtures import FixtureRequest
    from _pytest.monkeypatch import MonkeyPatch
    from pytest_mock.plugin import MockerFixture


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


RecordFactory = Callable[..., Record]


@pytest.fixture
def clock() -> FakeClock:
    """
    Provide a fake clock starting at a fixed reading.

    Returns:
        FakeClock: Clock advanced explicitly by tests
    """
    return FakeClock()


@pytest.fixture
def make_record() -> RecordFactory:
    """
    Provide a factory for records with sensible defaults.

    Returns:
        RecordFactory: Function building a Record
    """
    def _make(
        record_id: str,
        occurred_at: datetime,
        title: str = "",
        body: str = "",
        tags: Optional[List[str]] = None,
        category_rating: int = 3,
        owner_id: str = "user1",
        attachment_refs: Optional[List[str]] = None,
    ) -> Record:
        return Record(
            id=record_id,
            owner_id=owner_id,
            created_at=occurred_at,
            occurred_at=occurred_at,
            title=title,
            body=body,
            tags=tags or [],
            category_rating=category_rating,
            attachment_refs=attachment_refs or [],
        )
    return _make


@pytest.fixture
def sample_records(make_record: RecordFactory) -> List[Record]:
    """
    Provide a small diary for two owners.

    Returns:
        List[Record]: Records of user1 and user2
    """
    return [
        make_record(
            "r1", datetime(2024, 5, 3, 10, 0), "Weekend in Paris",
            "Walked along the Seine and ate croissants.", ["travel", "france"], 1,
            attachment_refs=["img/paris.jpg", "img/seine.jpg"],
        ),
        make_record(
            "r2", datetime(2024, 5, 2, 20, 0), "Quiet evening",
            "Read a book about Paris history.", ["reading"], 3,
        ),
        make_record(
            "r3", datetime(2024, 5, 1, 8, 30), "Morning run",
            "Ran five kilometers in the park.", ["sport", "health"], 2,
        ),
        make_record(
            "r4", datetime(2024, 4, 15, 12, 0), "Rainy day",
            "Stayed home and watched films.", ["home"], 4,
        ),
        make_record(
            "r5", datetime(2024, 5, 3, 9, 0), "Paris trip planning",
            "Booked the train tickets.", ["travel"], 2, owner_id="user2",
        ),
    ]


@pytest.fixture
def store(sample_records: List[Record]) -> InMemoryRecordStore:
    """
    Provide an in-memory record store seeded with the sample records.

    Returns:
        InMemoryRecordStore: Seeded store
    """
    return InMemoryRecordStore(sample_records)


@pytest.fixture
def list_cache(clock: FakeClock) -> TTLCache:
    """Provide a list cache driven by the fake clock."""
    return TTLCache("list", 600.0, clock=clock)


@pytest.fixture
def search_cache(clock: FakeClock) -> TTLCache:
    """Provide a search cache driven by the fake clock."""
    return TTLCache("search", 900.0, clock=clock)


@pytest.fixture
def test_settings() -> Settings:
    """
    Provide settings with the search throttle disabled.

    Returns:
        Settings: Settings for tests
    """
    return Settings(SEARCH_THROTTLE_MS=0, RECORD_STORE_BACKEND="memory")


@pytest.fixture
def session(store: InMemoryRecordStore, test_settings: Settings, clock: FakeClock) -> DiarySession:
    """
    Provide a started diary session over the sample store.

    Returns:
        DiarySession: Started session
    """
    return DiarySession(store, config=test_settings, clock=clock).start()


@pytest.fixture
def app(session: DiarySession) -> FastAPI:
    """
    FastAPI test application.

    Returns:
        FastAPI: Application instance serving the test session
    """
    return create_app(session)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """
    TestClient fixture.

    Provides a FastAPI TestClient for testing API endpoints. Entering the
    client runs the startup handlers.

    Args:
        app: FastAPI application fixture

    Yields:
        TestClient: FastAPI test client
    """
    with TestClient(app) as test_client:
        yield test_client
