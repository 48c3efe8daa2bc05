"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    BookingError,
    FetchFailure,
    NotFoundError,
    ValidationFailure,
    WorkflowStateError,
)
from .models import (
    BookingWindow,
    Meeting,
    MeetingStatus,
    Notification,
    NotificationType,
    SocialUser,
    TimeSlot,
)
from .slot_generator import SlotGenerator

__all__ = [
    "BookingError",
    "BookingWindow",
    "FetchFailure",
    "Meeting",
    "MeetingStatus",
    "NotFoundError",
    "Notification",
    "NotificationType",
    "SlotGenerator",
    "SocialUser",
    "TimeSlot",
    "ValidationFailure",
    "WorkflowStateError",
]
