"""
Subject use cases.

Every call opens its own session from the pool. Single-subject reads go
through the cache; lists and counts always hit the store. Mutations commit
first and invalidate afterwards, so a reader that misses between the two sees
the committed row.
"""
import logging

from taskboard.application.schemas import (Page, SubjectCreate, SubjectRead,
                                           SubjectUpdate, SubjectWithWorkItems,
                                           WorkItemRead, page_of)
from taskboard.domain.enums import SubjectRole, SubjectStatus
from taskboard.domain.exceptions import (ConflictException,
                                         ResourceNotFoundException)
from taskboard.infrastructure.cache.invalidation import CacheInvalidator
from taskboard.infrastructure.cache.keys import CacheKeys, CacheTTL
from taskboard.infrastructure.cache.redis_cache import CacheService
from taskboard.infrastructure.persistence.database import Database
from taskboard.infrastructure.persistence.repositories import (
    PaginationOptions, SubjectRepository, WorkItemRepository)
from taskboard.shared.telemetry.tracing import traced

logger = logging.getLogger(__name__)


class SubjectService:
    """Create, read, update and retire subjects"""

    def __init__(self, database: Database, cache: CacheService, invalidator: CacheInvalidator):
        self.database = database
        self.cache = cache
        self.invalidator = invalidator

    @traced("subject.create")
    async def create_subject(self, data: SubjectCreate) -> SubjectRead:
        """
        Register a new subject.

        Raises:
            ConflictException: If a live subject already uses the email
        """
        async with self.database.transaction() as session:
            repo = SubjectRepository(session)
            if await repo.is_email_taken(data.email):
                raise ConflictException("Subject", "email already registered", field="email")
            subject = await repo.create(data.model_dump())
            result = SubjectRead.model_validate(subject)

        logger.info("Created subject %s", result.id)
        return result

    @traced("subject.get")
    async def get_subject(self, subject_id: str) -> SubjectRead | None:
        """Get a live subject by ID, cached for CacheTTL.LONG"""

        async def load() -> dict | None:
            async with self.database.session() as session:
                subject = await SubjectRepository(session).find_by_id(subject_id)
                if subject is None:
                    return None
                return SubjectRead.model_validate(subject).model_dump(mode="json")

        payload = await self.cache.get_or_set(CacheKeys.subject(subject_id), load, ttl=CacheTTL.LONG)
        return SubjectRead.model_validate(payload) if payload is not None else None

    async def get_subject_or_raise(self, subject_id: str) -> SubjectRead:
        subject = await self.get_subject(subject_id)
        if subject is None:
            raise ResourceNotFoundException("Subject", subject_id)
        return subject

    @traced("subject.get_with_work_items")
    async def get_subject_with_work_items(self, subject_id: str) -> SubjectWithWorkItems | None:
        """Subject with its live owned and created work items (not cached)"""
        async with self.database.session() as session:
            subject = await SubjectRepository(session).find_by_id_with_work_items(subject_id)
            if subject is None:
                return None
            return SubjectWithWorkItems(
                subject=SubjectRead.model_validate(subject),
                owned_items=[WorkItemRead.model_validate(item) for item in subject.owned_items],
                created_items=[WorkItemRead.model_validate(item) for item in subject.created_items],
            )

    @traced("subject.find_by_email")
    async def find_by_email(self, email: str) -> SubjectRead | None:
        async with self.database.session() as session:
            subject = await SubjectRepository(session).find_by_email(email)
            return SubjectRead.model_validate(subject) if subject is not None else None

    @traced("subject.list")
    async def list_subjects(self, options: PaginationOptions | None = None) -> Page[SubjectRead]:
        async with self.database.session() as session:
            result = await SubjectRepository(session).find_all(options)
            return page_of(SubjectRead, result)

    @traced("subject.find_by_role")
    async def find_by_role(
        self, role: SubjectRole, options: PaginationOptions | None = None
    ) -> Page[SubjectRead]:
        async with self.database.session() as session:
            result = await SubjectRepository(session).find_by_role(role, options)
            return page_of(SubjectRead, result)

    @traced("subject.find_by_status")
    async def find_by_status(
        self, status: SubjectStatus, options: PaginationOptions | None = None
    ) -> Page[SubjectRead]:
        async with self.database.session() as session:
            result = await SubjectRepository(session).find_by_status(status, options)
            return page_of(SubjectRead, result)

    @traced("subject.update")
    async def update_subject(self, subject_id: str, data: SubjectUpdate) -> SubjectRead:
        """
        Apply the fields set on data.

        Raises:
            ResourceNotFoundException: If no live subject has this ID
            ConflictException: If the new email belongs to another live subject
        """
        changes = data.changes()
        async with self.database.transaction() as session:
            repo = SubjectRepository(session)
            email = changes.get("email")
            if email is not None and await repo.is_email_taken(email, exclude_id=subject_id):
                raise ConflictException("Subject", "email already registered", field="email")
            subject = await repo.update(subject_id, changes)
            result = SubjectRead.model_validate(subject)

        await self.invalidator.invalidate_subject(subject_id)
        return result

    @traced("subject.set_password_hash")
    async def set_password_hash(self, subject_id: str, password_hash: str) -> SubjectRead:
        async with self.database.transaction() as session:
            subject = await SubjectRepository(session).update_password_hash(subject_id, password_hash)
            result = SubjectRead.model_validate(subject)

        await self.invalidator.invalidate_subject(subject_id)
        return result

    async def _set_status(self, subject_id: str, status: SubjectStatus) -> SubjectRead:
        async with self.database.transaction() as session:
            repo = SubjectRepository(session)
            if status is SubjectStatus.ACTIVE:
                subject = await repo.activate(subject_id)
            elif status is SubjectStatus.INACTIVE:
                subject = await repo.deactivate(subject_id)
            else:
                subject = await repo.suspend(subject_id)
            result = SubjectRead.model_validate(subject)

        await self.invalidator.invalidate_subject(subject_id)
        logger.info("Subject %s is now %s", subject_id, status.value)
        return result

    @traced("subject.activate")
    async def activate(self, subject_id: str) -> SubjectRead:
        return await self._set_status(subject_id, SubjectStatus.ACTIVE)

    @traced("subject.deactivate")
    async def deactivate(self, subject_id: str) -> SubjectRead:
        return await self._set_status(subject_id, SubjectStatus.INACTIVE)

    @traced("subject.suspend")
    async def suspend(self, subject_id: str) -> SubjectRead:
        return await self._set_status(subject_id, SubjectStatus.SUSPENDED)

    @traced("subject.delete")
    async def delete_subject(self, subject_id: str) -> bool:
        """
        Soft delete a subject.

        Work items it owns keep their owner_id; they are not cascaded.
        """
        async with self.database.transaction() as session:
            deleted = await SubjectRepository(session).soft_delete(subject_id)

        if deleted:
            await self.invalidator.invalidate_subject(subject_id)
        return deleted

    @traced("subject.restore")
    async def restore_subject(self, subject_id: str) -> bool:
        """
        Raises:
            ConflictException: If a live subject took the email meanwhile
        """
        async with self.database.transaction() as session:
            restored = await SubjectRepository(session).restore(subject_id)

        if restored:
            await self.invalidator.invalidate_subject(subject_id)
        return restored

    @traced("subject.hard_delete")
    async def hard_delete_subject(self, subject_id: str) -> bool:
        """
        Physically remove a subject.

        The store nulls owner_id on the items it owned and removes the items
        it created. Cached records of both go with the subject's own keys,
        along with the list and stats keys of the created items' owners.
        """
        async with self.database.transaction() as session:
            work_items = WorkItemRepository(session)
            owned = await work_items.ids_owned_by(subject_id)
            created = await work_items.owner_pairs_created_by(subject_id)
            deleted = await SubjectRepository(session).hard_delete(subject_id)

        if deleted:
            await self.invalidator.invalidate_subject(subject_id)
            await self.invalidator.invalidate_work_items(
                [(item_id, None) for item_id in owned] + created
            )
        return deleted

    async def count_active(self) -> int:
        async with self.database.session() as session:
            return await SubjectRepository(session).count_active()

    async def exists(self, subject_id: str) -> bool:
        async with self.database.session() as session:
            return await SubjectRepository(session).exists(subject_id)
