"""
Error kinds raised by Taskboard operations.

A transport layer maps these onto its own status codes by error_code:
RESOURCE_NOT_FOUND, CONFLICT, VALIDATION_ERROR and BACKEND_UNAVAILABLE.
Only BACKEND_UNAVAILABLE is worth retrying.
"""

from typing import Any


class TaskboardException(Exception):
    """
    Root of the hierarchy; carries a machine-readable code and context details.

    Subclasses set `code` and `retryable` at class level.
    """

    code: str | None = None
    retryable: bool = False

    def __init__(self, message: str, error_code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.code or type(self).__name__
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


class ValidationException(TaskboardException):
    """Malformed caller input, e.g. an unknown field or an invalid enum value"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details={"field": field} if field else None)


class ResourceNotFoundException(TaskboardException):
    """An id that has no live row behind it"""

    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ConflictException(TaskboardException):
    """A write rejected by a uniqueness or foreign-key constraint"""

    code = "CONFLICT"

    def __init__(self, resource_type: str, reason: str, field: str | None = None):
        details = {"resource_type": resource_type, "reason": reason}
        if field:
            details["field"] = field
        super().__init__(f"{resource_type} conflict: {reason}", details=details)


class BackendUnavailableException(TaskboardException):
    """The store (or a cache marked required) could not be reached"""

    code = "BACKEND_UNAVAILABLE"
    retryable = True

    def __init__(self, backend: str, reason: str):
        super().__init__(f"{backend} unavailable: {reason}", details={"backend": backend, "reason": reason})
