"""
Domain-specific exception hierarchy for the meeting booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class FetchFailure(BookingError):
    """Raised when a collaborator is unreachable or returns unusable data."""


class ValidationFailure(BookingError):
    """Raised when a request is rejected before any side effect happens."""


class WorkflowStateError(ValidationFailure):
    """Raised when an operation is not allowed in the workflow's current state."""


class NotFoundError(BookingError):
    """Raised when a referenced record does not exist."""
