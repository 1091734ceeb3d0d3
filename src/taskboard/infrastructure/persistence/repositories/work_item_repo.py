from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskboard.domain.enums import WorkItemPriority, WorkItemStatus
from taskboard.infrastructure.persistence.models.work_item import WorkItem
from taskboard.infrastructure.persistence.repositories.base import BaseRepository
from taskboard.infrastructure.persistence.repositories.pagination import (
    PaginatedResult, PaginationOptions)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkItemRepository(BaseRepository[WorkItem]):
    """Repository for WorkItem entity with relationship, status and statistics queries"""

    resource_name = "WorkItem"

    def __init__(self, db: AsyncSession):
        super().__init__(db, WorkItem)

    def _overdue_criteria(self, now: datetime | None = None) -> list[Any]:
        return [
            WorkItem.due_date.is_not(None),
            WorkItem.due_date < (now or _utcnow()),
            WorkItem.status.in_(WorkItemStatus.open_statuses()),
        ]

    async def find_by_owner(
        self, owner_id: str, options: PaginationOptions | None = None
    ) -> PaginatedResult[WorkItem]:
        """Get all work items owned by a subject with pagination"""
        return await self.find_all((options or PaginationOptions()).with_filters(owner_id=owner_id))

    async def find_by_creator(
        self, creator_id: str, options: PaginationOptions | None = None
    ) -> PaginatedResult[WorkItem]:
        """Get all work items created by a subject with pagination"""
        return await self.find_all(
            (options or PaginationOptions()).with_filters(creator_id=creator_id)
        )

    async def find_by_status(
        self, status: WorkItemStatus, options: PaginationOptions | None = None
    ) -> PaginatedResult[WorkItem]:
        return await self.find_all((options or PaginationOptions()).with_filters(status=status))

    async def find_by_priority(
        self, priority: WorkItemPriority, options: PaginationOptions | None = None
    ) -> PaginatedResult[WorkItem]:
        return await self.find_all(
            (options or PaginationOptions()).with_filters(priority=priority)
        )

    async def find_overdue(
        self, options: PaginationOptions | None = None, now: datetime | None = None
    ) -> PaginatedResult[WorkItem]:
        """Open (TODO or IN_PROGRESS) work items whose due date has passed"""
        return await self.find_all(options, *self._overdue_criteria(now))

    async def find_unassigned(
        self, options: PaginationOptions | None = None
    ) -> PaginatedResult[WorkItem]:
        return await self.find_all((options or PaginationOptions()).with_filters(owner_id=None))

    async def find_by_id_with_relations(self, id: str) -> WorkItem | None:
        """Get live work item with owner and creator loaded"""
        with self._store_errors("find_by_id_with_relations"):
            result = await self.db.execute(
                select(WorkItem)
                .where(WorkItem.id == id, WorkItem.deleted_at.is_(None))
                .options(selectinload(WorkItem.owner), selectinload(WorkItem.creator))
            )
        return result.scalar_one_or_none()

    async def ids_owned_by(self, owner_id: str) -> list[str]:
        """IDs of every item referencing owner_id, soft-deleted ones included"""
        with self._store_errors("ids_owned_by"):
            rows = await self.db.execute(select(WorkItem.id).where(WorkItem.owner_id == owner_id))
        return list(rows.scalars().all())

    async def owner_pairs_created_by(self, creator_id: str) -> list[tuple[str, str | None]]:
        """(id, owner_id) of every item created by creator_id, soft-deleted ones included"""
        with self._store_errors("owner_pairs_created_by"):
            rows = await self.db.execute(
                select(WorkItem.id, WorkItem.owner_id).where(WorkItem.creator_id == creator_id)
            )
        return [(item_id, owner_id) for item_id, owner_id in rows.all()]

    async def update_status(self, id: str, status: WorkItemStatus) -> WorkItem:
        """Set status; transitions are not validated (any status from any status)"""
        return await self.update(id, {"status": status})

    async def assign(self, id: str, owner_id: str) -> WorkItem:
        return await self.update(id, {"owner_id": owner_id})

    async def unassign(self, id: str) -> WorkItem:
        return await self.update(id, {"owner_id": None})

    async def get_owner_stats(self, owner_id: str, now: datetime | None = None) -> dict[str, int]:
        """
        Count an owner's live work items by status.

        Returns:
            {"total", "todo", "in_progress", "done", "overdue"}; total also
            includes archived items
        """
        live_owned = [WorkItem.owner_id == owner_id, WorkItem.deleted_at.is_(None)]
        with self._store_errors("get_owner_stats"):
            rows = await self.db.execute(
                select(WorkItem.status, func.count())
                .where(*live_owned)
                .group_by(WorkItem.status)
            )
            by_status = {status: count for status, count in rows.all()}
            overdue = (
                await self.db.execute(
                    select(func.count())
                    .select_from(WorkItem)
                    .where(*live_owned, *self._overdue_criteria(now))
                )
            ).scalar_one()

        return {
            "total": sum(by_status.values()),
            "todo": by_status.get(WorkItemStatus.TODO, 0),
            "in_progress": by_status.get(WorkItemStatus.IN_PROGRESS, 0),
            "done": by_status.get(WorkItemStatus.DONE, 0),
            "overdue": overdue,
        }

    async def archive_completed_before(
        self, days_old: int = 30, now: datetime | None = None
    ) -> list[tuple[str, str | None]]:
        """
        Move DONE items not updated for days_old days to ARCHIVED.

        Returns:
            (id, owner_id) of every archived item, so callers can invalidate
            exactly the affected cache entries
        """
        cutoff = (now or _utcnow()) - timedelta(days=days_old)
        with self._store_errors("archive_completed_before"):
            rows = await self.db.execute(
                select(WorkItem.id, WorkItem.owner_id).where(
                    WorkItem.status == WorkItemStatus.DONE,
                    WorkItem.updated_at < cutoff,
                    WorkItem.deleted_at.is_(None),
                )
            )
            affected = [(item_id, owner_id) for item_id, owner_id in rows.all()]
            if affected:
                await self.db.execute(
                    update(WorkItem)
                    .where(WorkItem.id.in_([item_id for item_id, _ in affected]))
                    .values(status=WorkItemStatus.ARCHIVED)
                    .execution_options(synchronize_session="evaluate")
                )
        return affected
