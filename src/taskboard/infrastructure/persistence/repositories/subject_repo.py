from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskboard.domain.enums import SubjectRole, SubjectStatus
from taskboard.infrastructure.persistence.models.subject import (
    Subject, normalize_email)
from taskboard.infrastructure.persistence.models.work_item import WorkItem
from taskboard.infrastructure.persistence.repositories.base import BaseRepository
from taskboard.infrastructure.persistence.repositories.pagination import (
    PaginatedResult, PaginationOptions)


class SubjectRepository(BaseRepository[Subject]):
    """Repository for Subject entity"""

    resource_name = "Subject"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Subject)

    async def find_by_email(self, email: str) -> Subject | None:
        """Get live subject by (normalised) email address"""
        with self._store_errors("find_by_email"):
            result = await self.db.execute(
                select(Subject).where(
                    Subject.email == normalize_email(email), Subject.deleted_at.is_(None)
                )
            )
        return result.scalar_one_or_none()

    async def find_by_role(
        self, role: SubjectRole, options: PaginationOptions | None = None
    ) -> PaginatedResult[Subject]:
        return await self.find_all((options or PaginationOptions()).with_filters(role=role))

    async def find_by_status(
        self, status: SubjectStatus, options: PaginationOptions | None = None
    ) -> PaginatedResult[Subject]:
        return await self.find_all((options or PaginationOptions()).with_filters(status=status))

    async def is_email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        """
        Check whether a live subject already uses email.

        exclude_id skips the subject being updated so it does not conflict
        with itself.
        """
        criteria = [Subject.email == normalize_email(email)]
        if exclude_id:
            criteria.append(Subject.id != exclude_id)
        return await self.count(None, *criteria) > 0

    async def update_password_hash(self, id: str, password_hash: str) -> Subject:
        return await self.update(id, {"password_hash": password_hash})

    async def activate(self, id: str) -> Subject:
        return await self.update(id, {"status": SubjectStatus.ACTIVE})

    async def deactivate(self, id: str) -> Subject:
        return await self.update(id, {"status": SubjectStatus.INACTIVE})

    async def suspend(self, id: str) -> Subject:
        return await self.update(id, {"status": SubjectStatus.SUSPENDED})

    async def find_by_id_with_work_items(self, id: str) -> Subject | None:
        """Get live subject with its live owned and created work items loaded"""
        live_items = WorkItem.deleted_at.is_(None)
        with self._store_errors("find_by_id_with_work_items"):
            result = await self.db.execute(
                select(Subject)
                .where(Subject.id == id, Subject.deleted_at.is_(None))
                .options(
                    selectinload(Subject.owned_items.and_(live_items)),
                    selectinload(Subject.created_items.and_(live_items)),
                )
            )
        return result.scalar_one_or_none()

    async def count_active(self) -> int:
        return await self.count({"status": SubjectStatus.ACTIVE})
