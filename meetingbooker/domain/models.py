"""
Domain models for slots, meetings, notifications and profiles.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import ValidationFailure


class MeetingStatus(str, Enum):
    """Lifecycle status of a meeting."""
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class NotificationType(str, Enum):
    """Kind of booking event a notification reports."""
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"


@dataclass(frozen=True)
class TimeSlot:
    """
    A bookable interval on the host's calendar.

    Invariant: start_time must be before end_time.
    """
    start_time: DateTime
    end_time: DateTime
    available: bool = True

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Start time {self.start_time} must be before end time {self.end_time}"
            )

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end_time - self.start_time).total_seconds() / 60)

    def format_display(self) -> str:
        """Format: Mon, 02.06.2025 | 09:00 - 10:00"""
        start = self.start_time
        return (
            f"{start.format('ddd, DD.MM.YYYY')} | "
            f"{start.format('HH:mm')} - {self.end_time.format('HH:mm')}"
        )

    def __str__(self) -> str:
        return self.format_display()


@dataclass
class Meeting:
    """A booked meeting between a host and a guest."""
    id: str
    host_id: int
    guest_id: int
    start_time: DateTime
    end_time: DateTime
    title: str
    description: Optional[str] = None
    status: MeetingStatus = MeetingStatus.SCHEDULED
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))

    def __post_init__(self):
        if self.host_id == self.guest_id:
            raise ValidationFailure(
                f"Host and guest must differ, got {self.host_id} for both"
            )

    def involves(self, user_id: int) -> bool:
        """Check if the user is either party of the meeting."""
        return user_id in (self.host_id, self.guest_id)


@dataclass
class Notification:
    """A booking event delivered to a user."""
    id: str
    recipient_id: int
    sender_id: int
    type: NotificationType
    message: str
    meeting_id: Optional[str] = None
    read: bool = False
    created_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))

    def mark_read(self) -> None:
        """Flag the notification as read. There is no way back to unread."""
        self.read = True


@dataclass
class SocialUser:
    """Profile of a social-network account, identified by its FID."""
    fid: int
    username: str
    display_name: str
    pfp_url: str = ""
    bio: Optional[str] = None
    follower_count: Optional[int] = None
    following_count: Optional[int] = None


@dataclass(frozen=True)
class BookingWindow:
    """
    The range of calendar days a guest may book into.

    The window starts today and spans ``days`` consecutive days.
    """
    days: int = 14

    def __post_init__(self):
        if self.days < 1:
            raise ValueError(f"Booking window must span at least one day, got {self.days}")

    def dates(self, today: date) -> List[date]:
        """List every bookable day, starting with today."""
        start = pendulum.date(today.year, today.month, today.day)
        return [start.add(days=offset) for offset in range(self.days)]

    def contains(self, day: date, today: date) -> bool:
        """Check if a day falls inside the window."""
        offset = (day - today).days
        return 0 <= offset < self.days
