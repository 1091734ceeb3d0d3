"""
Domain layer - Enterprise Business Rules.

Enumerations and exceptions shared by every other layer. It has no
dependencies on other layers.
"""

from taskboard.domain.enums import (SubjectRole, SubjectStatus,
                                    WorkItemPriority, WorkItemStatus)
from taskboard.domain.exceptions import (BackendUnavailableException,
                                         ConflictException,
                                         ResourceNotFoundException,
                                         TaskboardException,
                                         ValidationException)

__all__ = [
    # Enums
    "SubjectRole",
    "SubjectStatus",
    "WorkItemStatus",
    "WorkItemPriority",
    # Exceptions
    "TaskboardException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConflictException",
    "BackendUnavailableException",
]
