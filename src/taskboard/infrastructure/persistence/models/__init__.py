# Mixins for model composition
from taskboard.infrastructure.persistence.models.mixins import (
    CuidMixin, SoftDeletableModel, SoftDeleteMixin, TimestampMixin)
from taskboard.infrastructure.persistence.models.subject import Subject
from taskboard.infrastructure.persistence.models.work_item import WorkItem

__all__ = [
    # Models
    "Subject",
    "WorkItem",
    # Mixins
    "CuidMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "SoftDeletableModel",
]
