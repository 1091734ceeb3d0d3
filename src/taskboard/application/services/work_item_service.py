"""
Work item use cases.

Cached reads: single items (CacheTTL.MEDIUM), owner lists per page options
and owner statistics (CacheTTL.SHORT). Every mutation records the owner the
item had before the change, commits, then invalidates the item together with
the lists and stats of both the previous and the resulting owner.
"""
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.application.schemas import (OwnerStats, Page, WorkItemCreate,
                                           WorkItemDetail, WorkItemRead,
                                           WorkItemUpdate, page_of)
from taskboard.domain.enums import WorkItemPriority, WorkItemStatus
from taskboard.domain.exceptions import ResourceNotFoundException
from taskboard.infrastructure.cache.invalidation import CacheInvalidator
from taskboard.infrastructure.cache.keys import CacheKeys, CacheTTL
from taskboard.infrastructure.cache.redis_cache import CacheService
from taskboard.infrastructure.persistence.database import Database
from taskboard.infrastructure.persistence.models import WorkItem
from taskboard.infrastructure.persistence.repositories import (
    PaginationOptions, SubjectRepository, WorkItemRepository)
from taskboard.shared.telemetry.tracing import traced

logger = logging.getLogger(__name__)

Mutation = Callable[[WorkItemRepository, AsyncSession], Awaitable[WorkItem]]


async def _require_subject(session: AsyncSession, subject_id: str) -> None:
    if not await SubjectRepository(session).exists(subject_id):
        raise ResourceNotFoundException("Subject", subject_id)


class WorkItemService:
    """Create, read, assign and progress work items"""

    def __init__(self, database: Database, cache: CacheService, invalidator: CacheInvalidator):
        self.database = database
        self.cache = cache
        self.invalidator = invalidator

    async def _mutate(self, item_id: str, mutation: Mutation) -> WorkItemRead:
        async with self.database.transaction() as session:
            repo = WorkItemRepository(session)
            current = await repo.find_by_id(item_id)
            if current is None:
                raise ResourceNotFoundException("WorkItem", item_id)
            previous_owner = current.owner_id
            item = await mutation(repo, session)
            result = WorkItemRead.model_validate(item)

        await self.invalidator.invalidate_work_item(item_id, previous_owner, result.owner_id)
        return result

    @traced("work_item.create")
    async def create_work_item(self, data: WorkItemCreate) -> WorkItemRead:
        """
        Create a work item.

        Raises:
            ResourceNotFoundException: If the creator, or the owner when one
                is given, is not a live subject
        """
        async with self.database.transaction() as session:
            await _require_subject(session, data.creator_id)
            if data.owner_id is not None:
                await _require_subject(session, data.owner_id)
            item = await WorkItemRepository(session).create(data.model_dump())
            result = WorkItemRead.model_validate(item)

        # The new item shows up in its owner's lists and stats
        await self.invalidator.invalidate_work_item(result.id, result.owner_id)
        logger.info("Created work item %s", result.id)
        return result

    @traced("work_item.get")
    async def get_work_item(self, item_id: str) -> WorkItemRead | None:
        async def load() -> dict | None:
            async with self.database.session() as session:
                item = await WorkItemRepository(session).find_by_id(item_id)
                if item is None:
                    return None
                return WorkItemRead.model_validate(item).model_dump(mode="json")

        payload = await self.cache.get_or_set(CacheKeys.work_item(item_id), load, ttl=CacheTTL.MEDIUM)
        return WorkItemRead.model_validate(payload) if payload is not None else None

    @traced("work_item.get_detail")
    async def get_work_item_detail(self, item_id: str) -> WorkItemDetail | None:
        """Work item with owner and creator resolved; always read from the store"""
        async with self.database.session() as session:
            item = await WorkItemRepository(session).find_by_id_with_relations(item_id)
            return WorkItemDetail.model_validate(item) if item is not None else None

    @traced("work_item.list")
    async def list_work_items(self, options: PaginationOptions | None = None) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_all(options)
            return page_of(WorkItemRead, result)

    @traced("work_item.find_by_owner")
    async def find_by_owner(
        self, owner_id: str, options: PaginationOptions | None = None
    ) -> Page[WorkItemRead]:
        """One page of an owner's items, cached per distinct page options"""
        options = options or PaginationOptions()

        async def load() -> dict:
            async with self.database.session() as session:
                result = await WorkItemRepository(session).find_by_owner(owner_id, options)
                return page_of(WorkItemRead, result).model_dump(mode="json")

        payload = await self.cache.get_or_set(
            CacheKeys.owner_items(owner_id, options), load, ttl=CacheTTL.SHORT
        )
        return Page[WorkItemRead].model_validate(payload)

    @traced("work_item.find_by_creator")
    async def find_by_creator(
        self, creator_id: str, options: PaginationOptions | None = None
    ) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_by_creator(creator_id, options)
            return page_of(WorkItemRead, result)

    @traced("work_item.find_by_status")
    async def find_by_status(
        self, status: WorkItemStatus, options: PaginationOptions | None = None
    ) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_by_status(status, options)
            return page_of(WorkItemRead, result)

    @traced("work_item.find_by_priority")
    async def find_by_priority(
        self, priority: WorkItemPriority, options: PaginationOptions | None = None
    ) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_by_priority(priority, options)
            return page_of(WorkItemRead, result)

    @traced("work_item.find_overdue")
    async def find_overdue(self, options: PaginationOptions | None = None) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_overdue(options)
            return page_of(WorkItemRead, result)

    @traced("work_item.find_unassigned")
    async def find_unassigned(self, options: PaginationOptions | None = None) -> Page[WorkItemRead]:
        async with self.database.session() as session:
            result = await WorkItemRepository(session).find_unassigned(options)
            return page_of(WorkItemRead, result)

    @traced("work_item.update")
    async def update_work_item(self, item_id: str, data: WorkItemUpdate) -> WorkItemRead:
        """
        Apply the fields set on data; owner_id=None unassigns.

        Raises:
            ResourceNotFoundException: If the item, or a newly set owner, does not exist
        """
        changes = data.changes()

        async def apply(repo: WorkItemRepository, session: AsyncSession) -> WorkItem:
            if changes.get("owner_id") is not None:
                await _require_subject(session, changes["owner_id"])
            return await repo.update(item_id, changes)

        return await self._mutate(item_id, apply)

    @traced("work_item.update_status")
    async def update_status(self, item_id: str, status: WorkItemStatus) -> WorkItemRead:
        async def apply(repo: WorkItemRepository, session: AsyncSession) -> WorkItem:
            return await repo.update_status(item_id, status)

        return await self._mutate(item_id, apply)

    @traced("work_item.assign")
    async def assign(self, item_id: str, owner_id: str) -> WorkItemRead:
        """
        Hand the item to owner_id.

        Both the old and the new owner lose their cached lists and stats.
        """
        async def apply(repo: WorkItemRepository, session: AsyncSession) -> WorkItem:
            await _require_subject(session, owner_id)
            return await repo.assign(item_id, owner_id)

        return await self._mutate(item_id, apply)

    @traced("work_item.unassign")
    async def unassign(self, item_id: str) -> WorkItemRead:
        async def apply(repo: WorkItemRepository, session: AsyncSession) -> WorkItem:
            return await repo.unassign(item_id)

        return await self._mutate(item_id, apply)

    async def _remove(self, item_id: str, operation: str, *, include_deleted: bool) -> bool:
        async with self.database.transaction() as session:
            repo = WorkItemRepository(session)
            current = await repo.find_by_id(item_id, include_deleted=include_deleted)
            if current is None:
                return False
            owner_id = current.owner_id
            affected = await getattr(repo, operation)(item_id)

        if affected:
            await self.invalidator.invalidate_work_item(item_id, owner_id)
        return affected

    @traced("work_item.delete")
    async def delete_work_item(self, item_id: str) -> bool:
        """Soft delete; False if there was no live item"""
        return await self._remove(item_id, "soft_delete", include_deleted=False)

    @traced("work_item.restore")
    async def restore_work_item(self, item_id: str) -> bool:
        """Undo a soft delete; False if the item was not deleted"""
        return await self._remove(item_id, "restore", include_deleted=True)

    @traced("work_item.hard_delete")
    async def hard_delete_work_item(self, item_id: str) -> bool:
        return await self._remove(item_id, "hard_delete", include_deleted=True)

    @traced("work_item.owner_stats")
    async def get_owner_stats(self, owner_id: str) -> OwnerStats:
        async def load() -> dict:
            async with self.database.session() as session:
                return await WorkItemRepository(session).get_owner_stats(owner_id)

        payload = await self.cache.get_or_set(CacheKeys.item_stats(owner_id), load, ttl=CacheTTL.SHORT)
        return OwnerStats.model_validate(payload)

    @traced("work_item.archive_completed")
    async def archive_completed(self, days_old: int = 30) -> int:
        """
        Archive DONE items untouched for days_old days.

        Returns:
            Number of items archived
        """
        async with self.database.transaction() as session:
            affected = await WorkItemRepository(session).archive_completed_before(days_old)

        if affected:
            await self.invalidator.invalidate_work_items(affected)
            logger.info("Archived %d completed work item(s)", len(affected))
        return len(affected)
