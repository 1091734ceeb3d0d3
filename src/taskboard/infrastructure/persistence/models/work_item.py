from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskboard.domain.enums import WorkItemPriority, WorkItemStatus
from taskboard.infrastructure.persistence.database import Base
from taskboard.infrastructure.persistence.models.mixins import SoftDeletableModel
from taskboard.infrastructure.persistence.models.subject import Subject


class WorkItem(SoftDeletableModel, Base):
    """
    Work item entity, owned by (optionally) and created by a Subject.

    owner_id is nullable (unassigned). creator_id must reference an existing
    subject when the item is created; neither reference is re-validated when
    the subject is later soft-deleted. Hard-deleting a subject nulls owner_id
    on its owned items and removes the items it created.
    """

    __tablename__ = "work_item"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[WorkItemStatus] = mapped_column(
        Enum(WorkItemStatus, native_enum=False, length=20),
        nullable=False,
        default=WorkItemStatus.TODO,
        index=True,
    )
    priority: Mapped[WorkItemPriority] = mapped_column(
        Enum(WorkItemPriority, native_enum=False, length=20),
        nullable=False,
        default=WorkItemPriority.MEDIUM,
        index=True,
    )
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("subject.id", ondelete="SET NULL"), nullable=True, index=True
    )
    creator_id: Mapped[str] = mapped_column(
        String, ForeignKey("subject.id", ondelete="CASCADE"), nullable=False, index=True
    )

    owner: Mapped[Subject | None] = relationship(
        back_populates="owned_items", foreign_keys=[owner_id], lazy="raise"
    )
    creator: Mapped[Subject] = relationship(
        back_populates="created_items", foreign_keys=[creator_id], lazy="raise"
    )

    __table_args__ = (Index("ix_work_item_owner_status", "owner_id", "status"),)

    @property
    def is_assigned(self) -> bool:
        return self.owner_id is not None

    @property
    def is_overdue(self) -> bool:
        if self.due_date is None or self.status not in WorkItemStatus.open_statuses():
            return False
        now = datetime.now(timezone.utc)
        due = self.due_date
        # SQLite hands back naive datetimes; treat them as UTC
        if due.tzinfo is None:
            due = due.replace(tzinfo=timezone.utc)
        return due < now
