from taskboard.infrastructure.persistence.repositories.base import BaseRepository
from taskboard.infrastructure.persistence.repositories.pagination import (
    PaginatedResult, PaginationMeta, PaginationOptions)
from taskboard.infrastructure.persistence.repositories.subject_repo import \
    SubjectRepository
from taskboard.infrastructure.persistence.repositories.work_item_repo import \
    WorkItemRepository

__all__ = [
    "BaseRepository",
    "PaginationOptions",
    "PaginationMeta",
    "PaginatedResult",
    "SubjectRepository",
    "WorkItemRepository",
]
