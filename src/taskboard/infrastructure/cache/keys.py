"""
Cache key layout and TTLs.

Single records:      {prefix}:{id}
Parameterised lists: {prefix}:{owner_id}:{digest of the page options}

The owner-scoped layout lets one SCAN pattern ({prefix}:{owner_id}:*) reach
every list cached for an owner, whatever options it was requested with.
"""
from taskboard.infrastructure.persistence.repositories.pagination import \
    PaginationOptions


class CacheTTL:
    """Cache TTL constants (in seconds)"""

    SHORT = 60  # 1 minute
    MEDIUM = 300  # 5 minutes
    LONG = 900  # 15 minutes
    HOUR = 3600  # 1 hour
    DAY = 86400  # 24 hours


class CachePrefix:
    """Cache key prefixes for different data types"""

    SUBJECT = "subject"
    WORK_ITEM = "workitem"
    OWNER_ITEMS = "owner_items"
    ITEM_STATS = "item_stats"


class CacheKeys:
    """Builders for every key the services read or invalidate"""

    @staticmethod
    def subject(subject_id: str) -> str:
        return f"{CachePrefix.SUBJECT}:{subject_id}"

    @staticmethod
    def work_item(item_id: str) -> str:
        return f"{CachePrefix.WORK_ITEM}:{item_id}"

    @staticmethod
    def owner_items(owner_id: str, options: PaginationOptions) -> str:
        return f"{CachePrefix.OWNER_ITEMS}:{owner_id}:{options.cache_digest()}"

    @staticmethod
    def owner_items_pattern(owner_id: str) -> str:
        return f"{CachePrefix.OWNER_ITEMS}:{owner_id}:*"

    @staticmethod
    def item_stats(owner_id: str) -> str:
        return f"{CachePrefix.ITEM_STATS}:{owner_id}"
