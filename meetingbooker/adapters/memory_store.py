"""
In-memory stand-ins for the calendar, meeting and notification backends.

Nothing here survives the process; a real deployment would swap these for
adapters backed by a calendar service and a database.
"""

import asyncio
import logging
import random
import uuid
from typing import Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFoundError, ValidationFailure
from ..domain.models import (
    Meeting,
    MeetingStatus,
    Notification,
    NotificationType,
    TimeSlot,
)
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class MockSlotProvider:
    """
    Serves generated slots for any host and day.

    With a ``seed`` the output depends only on (seed, host, date), so repeated
    queries return the same availability. Without one every call is random.
    """

    def __init__(self, generator: Optional[SlotGenerator] = None, seed: Optional[int] = None):
        self.generator = generator or SlotGenerator()
        self.seed = seed

    async def get_available_slots(self, host_id: int, date: str) -> List[TimeSlot]:
        day = pendulum.from_format(date, "YYYY-MM-DD").date()

        rng = None
        if self.seed is not None:
            rng = random.Random(f"{self.seed}:{host_id}:{date}")

        return self.generator.generate(day, rng=rng)


class InMemoryMeetingStore:
    """Keeps meetings in a dict keyed by id."""

    def __init__(self):
        self._meetings: Dict[str, Meeting] = {}

    async def create_meeting(
        self,
        host_id: int,
        guest_id: int,
        start_time: DateTime,
        end_time: DateTime,
        title: str,
        description: Optional[str] = None,
    ) -> Meeting:
        if start_time >= end_time:
            raise ValidationFailure(f"Start time {start_time} must be before end time {end_time}")

        meeting = Meeting(
            id=f"meeting-{uuid.uuid4().hex}",
            host_id=host_id,
            guest_id=guest_id,
            start_time=start_time,
            end_time=end_time,
            title=title,
            description=description,
            status=MeetingStatus.SCHEDULED,
        )
        self._meetings[meeting.id] = meeting
        logger.debug("Stored meeting %s (%s -> %s)", meeting.id, guest_id, host_id)
        return meeting

    async def list_meetings_for(self, user_id: int) -> List[Meeting]:
        """Meetings the user hosts or attends, earliest first."""
        meetings = [m for m in self._meetings.values() if m.involves(user_id)]
        return sorted(meetings, key=lambda m: m.start_time)

    async def get_meeting(self, meeting_id: str) -> Meeting:
        try:
            return self._meetings[meeting_id]
        except KeyError:
            raise NotFoundError(f"Unknown meeting: {meeting_id}") from None


class InMemoryNotificationSink:
    """
    Stores notifications per recipient.

    When a social client is supplied, each notification is also published as
    a cast. Publishing is best effort: failures are logged and the stored
    notification is returned regardless.
    """

    def __init__(self, social_client=None):
        self._notifications: Dict[str, Notification] = {}
        self._social_client = social_client

    async def notify(
        self,
        recipient_id: int,
        sender_id: int,
        type: NotificationType,
        meeting_id: Optional[str],
        message: str,
    ) -> Notification:
        notification = Notification(
            id=f"notification-{uuid.uuid4().hex}",
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=NotificationType(type),
            meeting_id=meeting_id,
            message=message,
        )
        self._notifications[notification.id] = notification

        if self._social_client is not None:
            try:
                await asyncio.to_thread(self._social_client.send_cast, message)
            except Exception as e:
                logger.warning("Could not publish notification %s as cast: %s", notification.id, e)

        return notification

    async def mark_read(self, notification_id: str) -> None:
        try:
            notification = self._notifications[notification_id]
        except KeyError:
            raise NotFoundError(f"Unknown notification: {notification_id}") from None

        notification.mark_read()

    async def list_for_user(self, user_id: int) -> List[Notification]:
        """Notifications addressed to the user, newest first."""
        notifications = [
            n for n in self._notifications.values() if n.recipient_id == user_id
        ]
        return sorted(notifications, key=lambda n: n.created_at, reverse=True)

    def unread_count(self, user_id: int) -> int:
        return sum(
            1 for n in self._notifications.values()
            if n.recipient_id == user_id and not n.read
        )
