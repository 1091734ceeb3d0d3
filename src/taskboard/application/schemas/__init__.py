from taskboard.application.schemas.common import Page, page_of
from taskboard.application.schemas.subject import (SubjectCreate, SubjectRead,
                                                   SubjectSummary,
                                                   SubjectUpdate)
from taskboard.application.schemas.work_item import (OwnerStats,
                                                     SubjectWithWorkItems,
                                                     WorkItemCreate,
                                                     WorkItemDetail,
                                                     WorkItemRead,
                                                     WorkItemUpdate)

__all__ = [
    "Page",
    "page_of",
    "SubjectCreate",
    "SubjectUpdate",
    "SubjectRead",
    "SubjectSummary",
    "WorkItemCreate",
    "WorkItemUpdate",
    "WorkItemRead",
    "WorkItemDetail",
    "OwnerStats",
    "SubjectWithWorkItems",
]
