"""
Domain Exceptions - Typed, recoverable outcomes of core operations

The HTTP layer maps these to status codes; nothing here is fatal to the process.
"""

from fastapi import status


class LedgerError(Exception):
    """Base class for all core errors"""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Bad Request"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(LedgerError):
    """Malformed input (empty description, inverted interval, ...)"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "Validation Error"


class SelfDependencyError(ValidationError):
    """A task cannot depend on itself"""
    error = "Self Dependency"


class CyclicDependencyError(LedgerError):
    """Accepting the change would make a task reachable from itself"""
    status_code = status.HTTP_409_CONFLICT
    error = "Cyclic Dependency"


class CyclicHierarchyError(CyclicDependencyError):
    """Accepting the parent assignment would make a task its own ancestor"""
    error = "Cyclic Hierarchy"


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class ForbiddenError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class InvalidStateError(LedgerError):
    """Operation not allowed in the record's current state"""
    status_code = status.HTTP_409_CONFLICT
    error = "Invalid State"


class ConflictError(LedgerError):
    """Concurrent modification detected - the caller may retry the whole operation"""
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"
