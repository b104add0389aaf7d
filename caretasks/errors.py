"""Error taxonomy for the care task scheduling engine"""

from typing import Any, Optional


class CareTaskError(Exception):
    """Base class for all scheduling engine errors"""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(CareTaskError):
    """Malformed pattern, inverted date range or an illegal request"""

    code = "VALIDATION_ERROR"


class InvalidIdentity(CareTaskError):
    """A synthetic occurrence id could not be decoded"""

    code = "INVALID_IDENTITY"


class NotFound(CareTaskError):
    code = "NOT_FOUND"


class NotRecurring(CareTaskError):
    """A series operation was requested on a task that is not a recurrence template"""

    code = "NOT_RECURRING"


class AlreadyMaterialized(CareTaskError):
    """
    A physical row already backs the requested occurrence.

    Benign: callers treat it as success and use ``task``, the existing row.
    """

    code = "ALREADY_MATERIALIZED"

    def __init__(self, message: str, task: Any = None):
        super().__init__(message)
        self.task = task


class AccessDenied(CareTaskError):
    """Raised by the authorization layer; the engine itself never raises it"""

    code = "FORBIDDEN"
