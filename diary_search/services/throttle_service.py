"""
Rate control for interactive search.

This module provides the two rate-limiting behaviors layered over the search
engine: debouncing of search-as-you-type input and per-owner suppression of
queries issued in quick succession.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], float]


class Debouncer(Generic[T]):
    """
    Delay a coroutine call until input has been quiet for ``delay`` seconds.

    Each ``call`` cancels the pending invocation and schedules a new one, so
    only the most recent call ever runs. There is no flush: a pending call can
    be cancelled but not forced to run early.

    Attributes:
        delay: Quiet period in seconds
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[T]]) -> None:
        """
        Initialize the debouncer.

        Args:
            delay: Quiet period in seconds
            callback: Coroutine function invoked once input settles
        """
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        self.delay = delay
        self._callback = callback
        self._pending: Optional["asyncio.Task[T]"] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def call(self, *args: Any, **kwargs: Any) -> "asyncio.Task[T]":
        """
        Schedule the callback, superseding any pending invocation.

        Must be called from a running event loop. Awaiting a superseded task
        raises ``asyncio.CancelledError``.

        Returns:
            asyncio.Task: Task that runs the callback after the quiet period
        """
        self.cancel()
        self._pending = asyncio.ensure_future(self._run_later(*args, **kwargs))
        return self._pending

    def cancel(self) -> None:
        if self.pending:
            self._pending.cancel()
        self._pending = None

    async def _run_later(self, *args: Any, **kwargs: Any) -> T:
        await asyncio.sleep(self.delay)
        return await self._callback(*args, **kwargs)


class QueryThrottle:
    """
    Track when each scope last issued a query.

    A scope (normally an owner id) is throttled while less than ``window``
    seconds have passed since its last issued query.

    Attributes:
        window: Suppression window in seconds
    """

    def __init__(self, window: float, clock: Clock = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._last_issued: Dict[str, float] = {}

    def is_throttled(self, scope: str) -> bool:
        last = self._last_issued.get(scope)
        if last is None:
            return False
        return self._clock() - last < self.window

    def mark_issued(self, scope: str) -> None:
        self._last_issued[scope] = self._clock()

    def reset(self, scope: Optional[str] = None) -> None:
        """Forget one scope, or every scope when none is given."""
        if scope is None:
            self._last_issued.clear()
        else:
            self._last_issued.pop(scope, None)


class SearchDebouncer:
    """
    Per-owner debouncing in front of a search function.

    Keystrokes of different owners never cancel each other.
    """

    def __init__(self, delay: float, search: Callable[..., Awaitable[List[Any]]]) -> None:
        """
        Initialize the search debouncer.

        Args:
            delay: Quiet period in seconds
            search: Coroutine function called as ``search(owner_id, query, ...)``
        """
        self.delay = delay
        self._search = search
        self._debouncers: Dict[str, Debouncer[List[Any]]] = {}

    def submit(self, owner_id: str, query: str, **kwargs: Any) -> "asyncio.Task[List[Any]]":
        """
        Register a keystroke for ``owner_id``.

        Args:
            owner_id: Owner typing the query
            query: Current contents of the search field
            **kwargs: Extra arguments forwarded to the search function

        Returns:
            asyncio.Task: Task resolving to the search results if not superseded
        """
        debouncer = self._debouncers.get(owner_id)
        if debouncer is None:
            debouncer = Debouncer(self.delay, self._search)
            self._debouncers[owner_id] = debouncer
        logger.debug(f"Debouncing search for owner {owner_id}: '{query}'")
        return debouncer.call(owner_id, query, **kwargs)

    def cancel(self, owner_id: Optional[str] = None) -> None:
        """Drop pending searches of one owner, or of every owner."""
        if owner_id is not None:
            debouncer = self._debouncers.pop(owner_id, None)
            if debouncer is not None:
                debouncer.cancel()
            return
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        self._debouncers.clear()
