from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from taskboard.application.schemas.subject import SubjectRead, SubjectSummary
from taskboard.domain.enums import WorkItemPriority, WorkItemStatus

NULLABLE_FIELDS = frozenset({"description", "due_date", "owner_id"})


class WorkItemCreate(BaseModel):
    """Schema for creating a work item"""
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    status: WorkItemStatus = WorkItemStatus.TODO
    priority: WorkItemPriority = WorkItemPriority.MEDIUM
    due_date: datetime | None = None
    owner_id: str | None = None
    creator_id: str


class WorkItemUpdate(BaseModel):
    """
    Schema for updating a work item; only fields that are set are applied.

    Setting owner_id explicitly to None unassigns the item.
    """
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: WorkItemStatus | None = None
    priority: WorkItemPriority | None = None
    due_date: datetime | None = None
    owner_id: str | None = None

    def changes(self) -> dict:
        """Fields explicitly set; None only survives for the nullable columns"""
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None or name in NULLABLE_FIELDS
        }


class WorkItemRead(BaseModel):
    """Schema for work item responses"""
    id: str
    title: str
    description: str | None
    status: WorkItemStatus
    priority: WorkItemPriority
    due_date: datetime | None
    owner_id: str | None
    creator_id: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class WorkItemDetail(WorkItemRead):
    """Work item with its owner and creator resolved; not cached"""
    owner: SubjectSummary | None
    creator: SubjectSummary
    is_assigned: bool
    is_overdue: bool


class OwnerStats(BaseModel):
    """Work item counts for one owner"""
    total: int
    todo: int
    in_progress: int
    done: int
    overdue: int


class SubjectWithWorkItems(BaseModel):
    """A subject with its live owned and created work items"""
    subject: SubjectRead
    owned_items: list[WorkItemRead]
    created_items: list[WorkItemRead]
