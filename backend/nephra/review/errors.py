"""Error taxonomy for the application review workflow.

Every failure the review core can report is a subclass of
:class:`ReviewError` so callers can catch the whole family, while the
concrete class tells the HTTP layer which status code to answer with.
"""

from typing import Optional

__all__ = [
    "ReviewError",
    "ApplicationNotFound",
    "InvalidTransition",
    "ReviewValidationError",
    "ReviewConflict",
    "StoreFailure",
]


class ReviewError(Exception):
    """Base class for all review workflow errors."""


class ApplicationNotFound(ReviewError, LookupError):
    """The referenced application id did not resolve in any collection."""

    def __init__(self, application_id: str, origin: Optional[str] = None):
        self.application_id = application_id
        self.origin = origin
        where = f" in '{origin}'" if origin else ""
        super().__init__(f"Application {application_id} not found{where}")


class InvalidTransition(ReviewError, ValueError):
    """The requested action is not allowed from the record's current state."""

    def __init__(self, action: str, status: str, detail: Optional[str] = None):
        self.action = action
        self.status = status
        message = f"Cannot {action} an application with status '{status}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ReviewValidationError(ReviewError, ValueError):
    """Caller input failed validation; nothing was written."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class ReviewConflict(ReviewError):
    """The record changed between read and conditional write."""

    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(
            f"Application {application_id} was modified by someone else; "
            "reload it and try again"
        )


class StoreFailure(ReviewError):
    """The backing store failed to read or write.

    The transport exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
