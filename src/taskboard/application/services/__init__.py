from taskboard.application.services.subject_service import SubjectService
from taskboard.application.services.work_item_service import WorkItemService

__all__ = ["SubjectService", "WorkItemService"]
