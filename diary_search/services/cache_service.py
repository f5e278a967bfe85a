"""
Cache service for storing and retrieving query results.

This module provides an in-process, read-through TTL cache. Each entry is
timestamped independently and served until its age reaches the cache's
time-to-live. Entries leave the cache only through explicit invalidation,
``clear`` or an overwriting ``put``; there is no size bound.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
KeyPredicate = Callable[[str], bool]
Loader = Callable[[], Awaitable[Any]]


class _Miss:
    """Sentinel returned by ``TTLCache.get`` when no fresh entry exists."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass
class CacheEntry:
    """
    A cached payload and its timestamps.

    Attributes:
        key: Cache key
        payload: Cached result
        inserted_at: Clock reading when the entry was stored
        issued_at: Clock reading when the fetch producing the payload was issued
    """
    key: str
    payload: Any
    inserted_at: float
    issued_at: float

    def age(self, now: float) -> float:
        return now - self.inserted_at


class TTLCache:
    """
    Read-through cache with a fixed expiry window per instance.

    Attributes:
        name: Name used in logs and statistics
        ttl: Time-to-live for entries in seconds
    """

    def __init__(self, name: str, ttl: float, clock: Clock = time.monotonic) -> None:
        """
        Initialize the cache.

        Args:
            name: Name used in logs and statistics
            ttl: Time-to-live for entries in seconds
            clock: Time source, monotonic by default
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, "asyncio.Task[Any]"] = {}
        self._generation = 0
        self._hits = 0
        self._misses = 0
        logger.info(f"Initialized TTLCache '{name}' with ttl={ttl}")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> List[str]:
        return list(self._entries)

    def get(self, key: str) -> Any:
        """
        Retrieve a fresh payload from the cache.

        Args:
            key: Cache key to retrieve

        Returns:
            Any: Cached payload if present and younger than the ttl, ``MISS`` otherwise
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return MISS

        if entry.age(self._clock()) >= self.ttl:
            # Expired entries stay available to peek() for degraded reads
            logger.debug(f"[{self.name}] Cache entry expired for key: {key}")
            self._misses += 1
            return MISS

        self._hits += 1
        return entry.payload

    def peek(self, key: str) -> Optional[CacheEntry]:
        """
        Return the entry for ``key`` regardless of its age.

        Args:
            key: Cache key

        Returns:
            Optional[CacheEntry]: The entry, or None if nothing is stored
        """
        return self._entries.get(key)

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.age(self._clock()) < self.ttl

    def put(self, key: str, payload: Any, issued_at: Optional[float] = None) -> bool:
        """
        Store a payload, replacing any existing entry.

        When ``issued_at`` is given and the current entry was produced by a
        fetch issued later, the older payload is discarded.

        Args:
            key: Cache key to store
            payload: Value to cache
            issued_at: Clock reading when the producing fetch was issued (optional)

        Returns:
            bool: True if the payload was stored
        """
        now = self._clock()
        issued = now if issued_at is None else issued_at
        existing = self._entries.get(key)
        if existing is not None and existing.issued_at > issued:
            logger.debug(f"[{self.name}] Dropped out-of-order result for key: {key}")
            return False

        self._entries[key] = CacheEntry(key=key, payload=payload, inserted_at=now, issued_at=issued)
        logger.debug(f"[{self.name}] Cached value for key: {key}")
        return True

    def invalidate(self, predicate: KeyPredicate) -> int:
        """
        Remove every entry whose key matches ``predicate``.

        Pending loads for matching keys are forgotten so that the next read
        issues a new fetch instead of joining one that started earlier.

        Args:
            predicate: Function deciding which keys to drop

        Returns:
            int: Number of removed entries
        """
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]

        for key in [key for key in self._in_flight if predicate(key)]:
            del self._in_flight[key]

        if doomed:
            logger.debug(f"[{self.name}] Invalidated {len(doomed)} entries")
        return len(doomed)

    def clear(self) -> None:
        """
        Clear all items from the cache.

        Loads still in flight complete for their callers but store nothing.
        """
        self._entries.clear()
        self._in_flight.clear()
        # Loads started before the clear must not repopulate the cache
        self._generation += 1
        logger.info(f"[{self.name}] Cache cleared")

    async def load(self, key: str, loader: Loader) -> Any:
        """
        Return the cached payload for ``key`` or fetch and cache it.

        Concurrent misses for the same key share a single ``loader`` call.
        A failing loader stores nothing and its exception reaches every
        waiting caller.

        Args:
            key: Cache key
            loader: Coroutine function producing the payload

        Returns:
            Any: Cached or freshly loaded payload
        """
        cached = self.get(key)
        if cached is not MISS:
            logger.debug(f"[{self.name}] Cache hit for key: {key}")
            return cached

        task = self._in_flight.get(key)
        if task is None:
            issued_at = self._clock()
            task = asyncio.ensure_future(self._fetch_and_store(key, loader, issued_at, self._generation))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            logger.debug(f"[{self.name}] Joining in-flight load for key: {key}")
        return await asyncio.shield(task)

    def pending(self, key: str) -> Optional["asyncio.Task[Any]"]:
        """Return the in-flight load for ``key``, if any."""
        return self._in_flight.get(key)

    async def _fetch_and_store(self, key: str, loader: Loader, issued_at: float, generation: int) -> Any:
        payload = await loader()
        if generation != self._generation:
            logger.debug(f"[{self.name}] Discarded load for key cleared mid-flight: {key}")
            return payload
        self.put(key, payload, issued_at=issued_at)
        return payload

    def _forget(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception as retrieved; callers re-raise it themselves
            task.exception()

    def stats(self) -> Dict[str, Any]:
        """
        Report size and hit counters.

        Returns:
            Dict[str, Any]: Cache statistics
        """
        return {
            'name': self.name,
            'size': len(self._entries),
            'in_flight': len(self._in_flight),
            'ttl': self.ttl,
            'hits': self._hits,
            'misses': self._misses,
        }

    def health_check(self) -> Dict[str, Any]:
        """
        Check the health status of the cache service.

        Returns:
            Dict[str, Any]: Health status information
        """
        return {'status': 'ok', **self.stats()}
