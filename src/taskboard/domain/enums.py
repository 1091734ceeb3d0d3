"""Domain enumerations for the Taskboard application."""

from enum import Enum


class SubjectRole(str, Enum):
    """Subject role enumeration"""

    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [role.value for role in cls]


class SubjectStatus(str, Enum):
    """Subject account status enumeration"""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]


class WorkItemStatus(str, Enum):
    """
    Work item lifecycle status.

    The usual progression is TODO -> IN_PROGRESS -> DONE -> ARCHIVED, but
    transitions are not enforced: any status may be set from any other.
    """

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    ARCHIVED = "ARCHIVED"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [status.value for status in cls]

    @classmethod
    def open_statuses(cls) -> tuple["WorkItemStatus", ...]:
        """Statuses that count towards the overdue figure"""
        return (cls.TODO, cls.IN_PROGRESS)


class WorkItemPriority(str, Enum):
    """Work item priority enumeration"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [priority.value for priority in cls]
