"""
Column mixins shared by Subject and WorkItem.

Both tables carry a CUID key, store-managed timestamps and a deleted_at
tombstone; SoftDeletableModel bundles the three.
"""
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from taskboard.shared.utils.generators import generate_cuid


def _timestamp_column(*, touch_on_update: bool = False):
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now() if touch_on_update else None,
        nullable=False,
    )


class CuidMixin:
    """Application-generated string id, assigned before the INSERT is flushed"""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class TimestampMixin:
    """
    created_at and updated_at, both filled in by the store.

    updated_at is also bumped by bulk UPDATE statements, which is what the
    completed-item archival cutoff compares against.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return _timestamp_column()

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return _timestamp_column(touch_on_update=True)


class SoftDeleteMixin:
    # Live rows have deleted_at NULL; repositories filter on it by default
    @declared_attr
    def deleted_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class SoftDeletableModel(CuidMixin, TimestampMixin, SoftDeleteMixin):
    """Base for every Taskboard table, combined with Base in the concrete model"""

    __abstract__ = True
