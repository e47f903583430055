"""Resolved filter cache.

Caches effective filter sets keyed by category id. Entries are never
invalidated implicitly: every mutation that can change a resolved set
(assign, unassign, bulk assign, assignment update, category and filter
deactivation or reactivation) calls one of the ``invalidate_*`` methods
after commit.

The cache lives in process memory, so invalidations do not reach other
worker processes. Deployments running more than one worker should set
``FILTER_CACHE_ENABLED=false``.
"""

from collections import OrderedDict

import structlog

from taxonomy_api.infrastructure.config import settings
from taxonomy_api.taxonomy.types import EffectiveFilters

logger = structlog.get_logger()

Generation = tuple[int, int]


class ResolvedFilterCache:
    """In-memory LRU cache of effective filter sets.

    Keeps a reverse index from filter id to the cached category ids whose
    set contains that filter, so filter-level mutations can evict exactly
    the affected entries.

    Readers take a generation token with :meth:`generation` before they
    query the store and hand it back to :meth:`put`. Any invalidation in
    between changes the token, and the stale set is not stored.
    """

    def __init__(self, max_entries: int = 1024, enabled: bool = True) -> None:
        """Initialize cache.

        Args:
            max_entries: Maximum number of cached categories.
            enabled: When False every lookup misses and nothing is stored.
        """
        self.max_entries = max_entries
        self.enabled = enabled
        self._entries: OrderedDict[str, EffectiveFilters] = OrderedDict()
        self._by_filter: dict[str, set[str]] = {}
        # Bumped per category, and globally for filter-wide invalidations
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._entries

    def generation(self, category_id: str) -> Generation:
        """Get the current invalidation token for a category."""
        return self._epoch, self._generations.get(category_id, 0)

    def get(self, category_id: str) -> EffectiveFilters | None:
        """Get the cached set for a category, marking it recently used."""
        if not self.enabled:
            return None
        cached = self._entries.get(category_id)
        if cached is not None:
            self._entries.move_to_end(category_id)
        return cached

    def put(self, effective: EffectiveFilters, generation: Generation | None = None) -> bool:
        """Store a resolved set under its category id.

        Args:
            effective: Resolved set to store.
            generation: Token taken before the set was read. When it no
                longer matches, the set is discarded.

        Returns:
            Whether the set was stored.
        """
        if not self.enabled:
            return False
        category_id = effective.category_id
        if generation is not None and generation != self.generation(category_id):
            logger.debug("Discarded stale resolved filters", category_id=category_id)
            return False

        if category_id in self._entries:
            self._drop(category_id)

        self._entries[category_id] = effective
        for filter_id in effective.filter_ids:
            self._by_filter.setdefault(filter_id, set()).add(category_id)

        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            self._drop(oldest)
        return True

    def invalidate_categories(self, *category_ids: str) -> int:
        """Evict the entries of the given categories.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for category_id in category_ids:
            self._generations[category_id] = self._generations.get(category_id, 0) + 1
            if category_id in self._entries:
                self._drop(category_id)
                removed += 1
        if removed:
            logger.debug("Invalidated resolved filters", category_ids=list(category_ids))
        return removed

    def invalidate_filter(self, filter_id: str) -> int:
        """Evict every entry whose set contains a filter.

        Reads in flight for any category are discarded too, since the
        categories they will resolve to are not known yet.

        Returns:
            Number of entries removed.
        """
        self._epoch += 1
        category_ids = list(self._by_filter.get(filter_id, ()))
        return self.invalidate_categories(*category_ids)

    def clear(self) -> None:
        """Drop all entries."""
        self._epoch += 1
        self._entries.clear()
        self._by_filter.clear()

    def _drop(self, category_id: str) -> None:
        effective = self._entries.pop(category_id)
        for filter_id in effective.filter_ids:
            holders = self._by_filter.get(filter_id)
            if holders is None:
                continue
            holders.discard(category_id)
            if not holders:
                del self._by_filter[filter_id]


# Global cache instance
_filter_cache: ResolvedFilterCache | None = None


def get_filter_cache() -> ResolvedFilterCache:
    """Get or create the process-wide resolved filter cache.

    Returns:
        ResolvedFilterCache instance.
    """
    global _filter_cache
    if _filter_cache is None:
        _filter_cache = ResolvedFilterCache(
            max_entries=settings.filter_cache_max_entries,
            enabled=settings.filter_cache_enabled,
        )
    return _filter_cache
