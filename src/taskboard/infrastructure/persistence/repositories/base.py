import logging
from abc import ABC
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskboard.domain.exceptions import (BackendUnavailableException,
                                         ConflictException,
                                         ResourceNotFoundException,
                                         ValidationException)
from taskboard.infrastructure.persistence.database import (CONNECTIVITY_ERRORS,
                                                           Base)
from taskboard.infrastructure.persistence.repositories.pagination import (
    PaginatedResult, PaginationMeta, PaginationOptions)

ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)

# Store-managed columns callers may not write directly
PROTECTED_FIELDS = frozenset({"id", "created_at", "updated_at", "deleted_at"})


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository implementing common CRUD, pagination and soft-delete operations.

    Works with any model that has an ``id`` and a ``deleted_at`` column (see
    SoftDeletableModel). Default-scope reads exclude soft-deleted rows.

    Store failures are translated here so callers only see domain errors:
    - IntegrityError -> ConflictException
    - connectivity errors -> BackendUnavailableException (not retried)
    - missing row on update -> ResourceNotFoundException
    """

    resource_name: str = "Resource"

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    @property
    def _model(self) -> Any:
        # Cast to Any for SQLAlchemy dynamic attribute access (id/deleted_at come from mixins)
        return self.model

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as e:
            logger.warning("Constraint violation during %s on %s: %s", operation, self.resource_name, e.orig)
            raise ConflictException(self.resource_name, str(e.orig)) from e
        except CONNECTIVITY_ERRORS as e:
            logger.error("Store unavailable during %s on %s: %s", operation, self.resource_name, e)
            raise BackendUnavailableException("database", str(e)) from e

    def _scoped(self, *conditions: ColumnElement[bool], include_deleted: bool = False) -> list[ColumnElement[bool]]:
        scoped = list(conditions)
        if not include_deleted:
            scoped.append(self._model.deleted_at.is_(None))
        return scoped

    def _column(self, name: str, purpose: str) -> Any:
        if name not in sa_inspect(self.model).column_attrs:
            raise ValidationException(
                f"Unknown {purpose} field '{name}' for {self.resource_name}", field=name
            )
        return getattr(self.model, name)

    def _filter_conditions(self, filters: Mapping[str, Any]) -> list[ColumnElement[bool]]:
        conditions = []
        for name, value in filters.items():
            column = self._column(name, "filter")
            if value is None:
                conditions.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)
        return conditions

    def _ordering(self, order_by: Mapping[str, str]) -> list[Any]:
        ordering = []
        for name, direction in order_by.items():
            column = self._column(name, "sort")
            ordering.append(column.desc() if direction == "desc" else column.asc())
        if "id" not in order_by:
            # Tie breaker so equal sort keys still page deterministically
            ordering.append(self._model.id.asc())
        return ordering

    def _checked_fields(self, data: Mapping[str, Any]) -> dict[str, Any]:
        columns = sa_inspect(self.model).column_attrs
        for name in data:
            if name in PROTECTED_FIELDS:
                raise ValidationException(f"Field '{name}' is managed by the store", field=name)
            if name not in columns:
                raise ValidationException(
                    f"Unknown field '{name}' for {self.resource_name}", field=name
                )
        return dict(data)

    async def find_by_id(self, id: str, *, include_deleted: bool = False) -> ModelType | None:
        """Get a single live record by ID (soft-deleted rows only when asked)"""
        stmt = select(self.model).where(
            *self._scoped(self._model.id == id, include_deleted=include_deleted)
        )
        with self._store_errors("find_by_id"):
            result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_all(
        self, options: PaginationOptions | None = None, *criteria: ColumnElement[bool]
    ) -> PaginatedResult[ModelType]:
        """
        Get one page of records matching options.filters and any extra criteria.

        total counts every matching row, not just the page. Two calls are two
        independent queries: concurrent writes can shift rows between pages.
        """
        options = options or PaginationOptions()
        conditions = self._scoped(
            *self._filter_conditions(options.filters),
            *criteria,
            include_deleted=options.include_deleted,
        )

        count_stmt = select(func.count()).select_from(self.model).where(*conditions)
        stmt = (
            select(self.model)
            .where(*conditions)
            .order_by(*self._ordering(options.order_by))
            .offset(options.skip)
            .limit(options.limit)
        )
        for relation in options.relations:
            if relation not in sa_inspect(self.model).relationships:
                raise ValidationException(
                    f"Unknown relation '{relation}' for {self.resource_name}", field=relation
                )
            stmt = stmt.options(selectinload(getattr(self.model, relation)))

        with self._store_errors("find_all"):
            total = (await self.db.execute(count_stmt)).scalar_one()
            items = list((await self.db.execute(stmt)).scalars().all())

        return PaginatedResult(
            items=items,
            pagination=PaginationMeta.build(options.page, options.limit, total),
        )

    async def create(self, data: Mapping[str, Any] | ModelType) -> ModelType:
        """Insert a new record; id and timestamps are assigned by the store layer"""
        if isinstance(data, self.model):
            obj = data
        else:
            obj = self.model(**self._checked_fields(data))

        with self._store_errors("create"):
            self.db.add(obj)
            await self.db.flush()
            await self.db.refresh(obj)
        return obj

    async def update(self, id: str, partial: Mapping[str, Any]) -> ModelType:
        """
        Merge partial onto the live record and persist it.

        No version check is made: concurrent updates race and the last
        commit wins.
        """
        obj = await self.find_by_id(id)
        if obj is None:
            raise ResourceNotFoundException(self.resource_name, id)

        for name, value in self._checked_fields(partial).items():
            setattr(obj, name, value)
        setattr(obj, "updated_at", func.now())

        with self._store_errors("update"):
            await self.db.flush()
            await self.db.refresh(obj)
        return obj

    async def soft_delete(self, id: str) -> bool:
        """Set deleted_at on a live record; False if nothing was affected"""
        stmt = (
            update(self.model)
            .where(*self._scoped(self._model.id == id))
            .values(deleted_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="evaluate")
        )
        with self._store_errors("soft_delete"):
            result = await self.db.execute(stmt)
        return (result.rowcount or 0) > 0

    async def hard_delete(self, id: str) -> bool:
        """Physically remove the record whatever its soft-delete state (irreversible)"""
        stmt = (
            delete(self.model)
            .where(self._model.id == id)
            .execution_options(synchronize_session="evaluate")
        )
        with self._store_errors("hard_delete"):
            result = await self.db.execute(stmt)
        return (result.rowcount or 0) > 0

    async def restore(self, id: str) -> bool:
        """Clear deleted_at; False when the record was not soft-deleted"""
        stmt = (
            update(self.model)
            .where(self._model.id == id, self._model.deleted_at.is_not(None))
            .values(deleted_at=None)
            .execution_options(synchronize_session="evaluate")
        )
        with self._store_errors("restore"):
            result = await self.db.execute(stmt)
        return (result.rowcount or 0) > 0

    async def count(
        self,
        filters: Mapping[str, Any] | None = None,
        *criteria: ColumnElement[bool],
        include_deleted: bool = False,
    ) -> int:
        """Count records matching equality filters and extra criteria"""
        conditions = self._scoped(
            *self._filter_conditions(filters or {}),
            *criteria,
            include_deleted=include_deleted,
        )
        stmt = select(func.count()).select_from(self.model).where(*conditions)
        with self._store_errors("count"):
            return (await self.db.execute(stmt)).scalar_one()

    async def exists(self, id: str, *, include_deleted: bool = False) -> bool:
        return await self.count(None, self._model.id == id, include_deleted=include_deleted) > 0
