"""Service for wiring and managing one diary session.

A session owns the two caches, the invalidation hub, the throttle and the
debouncer, and the services built on them. It is constructed explicitly and
handed to whatever needs it; nothing here is module-level state.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from diary_search.api.models import Record
from diary_search.core.config import RecordStoreBackend, Settings, settings as default_settings
from diary_search.core.database import create_db_engine, create_session_factory
from diary_search.core.init_db import init_db
from diary_search.services.cache_service import Clock, TTLCache
from diary_search.services.entry_service import EntryService
from diary_search.services.http_record_store import HttpRecordStore
from diary_search.services.invalidation_service import InvalidationHub
from diary_search.services.record_store import InMemoryRecordStore, ObjectStoreClient, RecordStoreClient
from diary_search.services.search_service import SearchEngine
from diary_search.services.sql_record_store import SqlRecordStore
from diary_search.services.throttle_service import QueryThrottle, SearchDebouncer

logger = logging.getLogger(__name__)


class DiarySession:
    """Caches and services for one signed-in user session.

    Attributes:
        store: Backing record store.
        list_cache: Short-lived cache for list and calendar views.
        search_cache: Longer-lived cache for search results and suggestions.
        hub: Invalidation hub registered with both caches.
        throttle: Per-owner duplicate search suppression.
        search_engine: Cached search over recent records.
        entries: Cached listings and the mutation pathway.
        debouncer: Search-as-you-type front end for the search engine.
    """

    def __init__(
        self,
        store: RecordStoreClient,
        config: Optional[Settings] = None,
        object_store: Optional[ObjectStoreClient] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """Wire a session from configuration.

        Args:
            store: Backing record store.
            config: Settings to use, the process settings if omitted.
            object_store: Attachment store for cascading deletes (optional).
            clock: Time source shared by the caches and the throttle.
        """
        config = config or default_settings
        self.store = store
        self.list_cache = TTLCache("list", config.LIST_CACHE_TTL, clock=clock)
        self.search_cache = TTLCache("search", config.SEARCH_CACHE_TTL, clock=clock)
        self.hub = InvalidationHub([self.list_cache, self.search_cache])
        self.throttle = QueryThrottle(config.SEARCH_THROTTLE_MS / 1000.0, clock=clock)
        self.search_engine = SearchEngine(
            store,
            self.search_cache,
            self.throttle,
            default_limit=config.SEARCH_LIMIT,
            window_factor=config.SEARCH_WINDOW_FACTOR,
            suggestion_window=config.SUGGESTION_WINDOW,
            max_suggestions=config.MAX_SUGGESTIONS,
            min_suggestion_length=config.MIN_SUGGESTION_LENGTH,
        )
        self.entries = EntryService(
            store,
            self.list_cache,
            self.hub,
            object_store=object_store,
            page_size=config.PAGE_SIZE,
            recent_tags_window=config.RECENT_TAGS_WINDOW,
            recent_tags_limit=config.RECENT_TAGS_LIMIT,
        )
        self.debouncer = SearchDebouncer(config.SEARCH_DEBOUNCE_MS / 1000.0, self.search_engine.search)
        self.started = False

    def start(self) -> "DiarySession":
        """Begin a session with empty caches."""
        self._reset()
        self.started = True
        logger.info("Diary session started")
        return self

    def refresh(self) -> None:
        """Drop every cached result, e.g. for pull-to-refresh."""
        self.hub.purge_all()
        logger.info("Diary session caches refreshed")

    def sign_out(self) -> None:
        """End the session so no data leaks into the next account."""
        self._reset()
        self.started = False
        logger.info("Diary session signed out")

    def _reset(self) -> None:
        self.debouncer.cancel()
        self.throttle.reset()
        self.hub.purge_all()

    def search_as_you_type(self, owner_id: str, query: str, **kwargs: Any) -> "asyncio.Task[List[Record]]":
        """Debounced search; only the last keystroke in a burst runs."""
        return self.debouncer.submit(owner_id, query, **kwargs)

    def cache_stats(self) -> Dict[str, Dict[str, Any]]:
        return {cache.name: cache.stats() for cache in self.hub.caches}


def create_record_store(config: Optional[Settings] = None) -> RecordStoreClient:
    """Build the record store selected by ``RECORD_STORE_BACKEND``.

    Args:
        config: Settings to use, the process settings if omitted.

    Returns:
        RecordStoreClient: The configured store.

    Raises:
        ValueError: If the HTTP backend is selected without ``RECORD_STORE_URL``.
    """
    config = config or default_settings
    backend = config.RECORD_STORE_BACKEND
    logger.info(f"Using {backend.value} record store")

    if backend == RecordStoreBackend.MEMORY:
        return InMemoryRecordStore()

    if backend == RecordStoreBackend.HTTP:
        if not config.RECORD_STORE_URL:
            raise ValueError("RECORD_STORE_URL must be set for the http record store")
        return HttpRecordStore(
            config.RECORD_STORE_URL,
            timeout=config.RECORD_STORE_TIMEOUT,
            max_retries=config.RECORD_STORE_MAX_RETRIES,
        )

    engine = create_db_engine(config.DATABASE_URL)
    init_db(engine)
    return SqlRecordStore(create_session_factory(engine))
