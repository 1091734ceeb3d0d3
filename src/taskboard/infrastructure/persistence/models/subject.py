from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Enum, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from taskboard.domain.enums import SubjectRole, SubjectStatus
from taskboard.infrastructure.persistence.database import Base
from taskboard.infrastructure.persistence.models.mixins import SoftDeletableModel

if TYPE_CHECKING:
    from taskboard.infrastructure.persistence.models.work_item import WorkItem


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Subject(SoftDeletableModel, Base):
    """
    Subject entity: a person who creates and owns work items.

    Inherits from SoftDeletableModel:
        - id: CUID primary key
        - created_at / updated_at: Store-managed timestamps
        - deleted_at: Soft-delete marker

    Email is normalised on assignment and unique among live rows only, so a
    soft-deleted subject does not block re-registration of its address.
    """

    __tablename__ = "subject"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    # Credential material is opaque here; hashing happens above this layer
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[SubjectRole] = mapped_column(
        Enum(SubjectRole, native_enum=False, length=20),
        nullable=False,
        default=SubjectRole.USER,
        index=True,
    )
    status: Mapped[SubjectStatus] = mapped_column(
        Enum(SubjectStatus, native_enum=False, length=20),
        nullable=False,
        default=SubjectStatus.ACTIVE,
        index=True,
    )

    owned_items: Mapped[list[WorkItem]] = relationship(
        back_populates="owner", foreign_keys="WorkItem.owner_id", lazy="raise", passive_deletes=True
    )
    created_items: Mapped[list[WorkItem]] = relationship(
        back_populates="creator", foreign_keys="WorkItem.creator_id", lazy="raise", passive_deletes=True
    )

    __table_args__ = (
        Index(
            "uq_subject_email_live",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return normalize_email(value) if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
