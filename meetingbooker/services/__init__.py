"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_workflow import (
    BookingResult,
    BookingWorkflow,
    MeetingStore,
    NotificationSink,
    SlotProvider,
    WorkflowState,
)

__all__ = [
    "BookingResult",
    "BookingWorkflow",
    "MeetingStore",
    "NotificationSink",
    "SlotProvider",
    "WorkflowState",
]
