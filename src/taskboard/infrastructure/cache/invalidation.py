"""
Mapping from "this record mutated" to "these cache keys are now stale".

Services call the invalidator after their store transaction has committed.
When the blast radius of a mutation is unclear the invalidator removes the
larger set: an extra miss costs one store read, a missed key serves stale
data until its TTL runs out.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from taskboard.infrastructure.cache.keys import CacheKeys
from taskboard.infrastructure.cache.redis_cache import CacheService

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """Per-entity invalidation rules for subjects and work items"""

    def __init__(self, cache: CacheService):
        self.cache = cache

    async def invalidate_owner(self, owner_id: str) -> int:
        """Drop every list and the statistics cached for one owner"""
        removed = await self.cache.delete_pattern(CacheKeys.owner_items_pattern(owner_id))
        if await self.cache.delete(CacheKeys.item_stats(owner_id)):
            removed += 1
        return removed

    async def invalidate_subject(self, subject_id: str) -> int:
        """
        Drop a subject's record and everything cached under it as an owner.

        Returns:
            Number of keys removed
        """
        removed = 1 if await self.cache.delete(CacheKeys.subject(subject_id)) else 0
        removed += await self.invalidate_owner(subject_id)
        logger.debug("Invalidated %d cache key(s) for subject %s", removed, subject_id)
        return removed

    async def invalidate_work_item(self, item_id: str, *owner_ids: str | None) -> int:
        """
        Drop a work item's record and the lists/stats of every owner involved.

        Pass both the pre- and post-mutation owner when an assignment may
        have changed; None and duplicates are ignored.

        Returns:
            Number of keys removed
        """
        removed = 1 if await self.cache.delete(CacheKeys.work_item(item_id)) else 0
        for owner_id in _distinct_owners(owner_ids):
            removed += await self.invalidate_owner(owner_id)
        logger.debug("Invalidated %d cache key(s) for work item %s", removed, item_id)
        return removed

    async def invalidate_work_items(self, items: Iterable[tuple[str, str | None]]) -> int:
        """Bulk form of invalidate_work_item for (id, owner_id) pairs"""
        pairs = list(items)
        removed = 0
        for item_id, _ in pairs:
            if await self.cache.delete(CacheKeys.work_item(item_id)):
                removed += 1
        for owner_id in _distinct_owners(owner_id for _, owner_id in pairs):
            removed += await self.invalidate_owner(owner_id)
        return removed


def _distinct_owners(owner_ids: Iterable[str | None]) -> list[str]:
    return list(dict.fromkeys(owner_id for owner_id in owner_ids if owner_id))
