"""
Cache invalidation hub.

Every successful create, update or delete of a record must be reported here.
The hub purges all entries of the affected owner from every registered cache,
so the next read for that owner goes to the record store.
"""
import logging
from typing import Iterable, List

from ..utils.cache import owner_key_prefix
from .cache_service import TTLCache

logger = logging.getLogger(__name__)


class InvalidationHub:
    """
    Owner-scoped invalidation across a set of caches.

    Invalidation is coarse: a mutation purges every cached query of its
    owner, whichever query kind produced it.
    """

    def __init__(self, caches: Iterable[TTLCache] = ()) -> None:
        self._caches: List[TTLCache] = []
        for cache in caches:
            self.register(cache)

    @property
    def caches(self) -> List[TTLCache]:
        return list(self._caches)

    def register(self, cache: TTLCache) -> None:
        """Add a cache to purge on mutations; registering twice is a no-op."""
        if cache not in self._caches:
            self._caches.append(cache)

    def unregister(self, cache: TTLCache) -> None:
        if cache in self._caches:
            self._caches.remove(cache)

    def purge_owner(self, owner_id: str, reason: str = "mutation") -> int:
        """
        Remove every cached entry that belongs to ``owner_id``.

        Args:
            owner_id: Owner whose entries are dropped
            reason: Label used in logs

        Returns:
            int: Number of entries removed across all caches
        """
        prefix = owner_key_prefix(owner_id)
        removed = sum(cache.invalidate(lambda key: key.startswith(prefix)) for cache in self._caches)
        logger.info(f"Invalidated {removed} cache entries for owner {owner_id} ({reason})")
        return removed

    def purge_owners(self, owner_ids: Iterable[str], reason: str = "mutation") -> int:
        return sum(self.purge_owner(owner_id, reason) for owner_id in set(owner_ids))

    def purge_all(self) -> None:
        """Clear every registered cache."""
        for cache in self._caches:
            cache.clear()

    # Mutation notifications; call only after the store write succeeded.

    def on_record_created(self, owner_id: str) -> int:
        return self.purge_owner(owner_id, "created")

    def on_record_updated(self, owner_id: str) -> int:
        return self.purge_owner(owner_id, "updated")

    def on_record_deleted(self, owner_id: str) -> int:
        return self.purge_owner(owner_id, "deleted")

    def on_records_created(self, owner_ids: Iterable[str]) -> int:
        return self.purge_owners(owner_ids, "batch created")

    def on_records_updated(self, owner_ids: Iterable[str]) -> int:
        return self.purge_owners(owner_ids, "batch updated")

    def on_records_deleted(self, owner_ids: Iterable[str]) -> int:
        return self.purge_owners(owner_ids, "batch deleted")
