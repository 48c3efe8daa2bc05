"""
Application service driving a single booking attempt.

The workflow loads a host's slots for a day, lets the guest pick one, books
the meeting and notifies the host. Calendar, meeting storage and notification
delivery are reached through small protocols so the real backends or the
in-memory adapters can be plugged in.

States::

    IDLE -> SLOTS_LOADING -> SLOTS_READY -> SUBMITTING -> SUCCEEDED
                  |                              |
                  +-----------> FAILED <---------+

Operations are expected to be awaited one at a time. Starting an operation
while another one is in flight is rejected with ``WorkflowStateError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import BookingError, FetchFailure, ValidationFailure, WorkflowStateError
from ..domain.models import BookingWindow, Meeting, Notification, NotificationType, TimeSlot

logger = logging.getLogger(__name__)


class SlotProvider(Protocol):
    """Source of candidate slots on a host's calendar."""

    async def get_available_slots(self, host_id: int, date: str) -> Sequence[TimeSlot]:
        """Return the slots for ``date`` (YYYY-MM-DD)."""


class MeetingStore(Protocol):
    """Persistence for booked meetings."""

    async def create_meeting(
        self,
        host_id: int,
        guest_id: int,
        start_time: DateTime,
        end_time: DateTime,
        title: str,
        description: Optional[str] = None,
    ) -> Meeting:
        """Persist a meeting and return it with a unique id."""

    async def list_meetings_for(self, user_id: int) -> List[Meeting]:
        """Return meetings the user takes part in."""


class NotificationSink(Protocol):
    """Delivery of booking events to users."""

    async def notify(
        self,
        recipient_id: int,
        sender_id: int,
        type: NotificationType,
        meeting_id: Optional[str],
        message: str,
    ) -> Notification:
        """Create and deliver a notification."""

    async def mark_read(self, notification_id: str) -> None:
        """Flag a notification as read."""


class WorkflowState(str, Enum):
    IDLE = "idle"
    SLOTS_LOADING = "slots_loading"
    SLOTS_READY = "slots_ready"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a successful submission; notification is None if delivery failed."""
    meeting: Meeting
    notification: Optional[Notification]


class BookingWorkflow:
    """
    State machine over one booking attempt between a host and a guest.

    Meeting creation is part of the booking; notifying the host is not. If the
    notification cannot be delivered the booking still succeeds and the
    failure is only logged.
    """

    _LOADABLE_FROM = frozenset({WorkflowState.IDLE, WorkflowState.SLOTS_READY, WorkflowState.FAILED})
    _IN_FLIGHT = frozenset({WorkflowState.SLOTS_LOADING, WorkflowState.SUBMITTING})

    def __init__(
        self,
        slot_provider: SlotProvider,
        meeting_store: MeetingStore,
        notification_sink: NotificationSink,
        booking_window: Optional[BookingWindow] = None,
        timezone: str = "UTC",
        auto_reset_seconds: float = 2.0,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._slot_provider = slot_provider
        self._meeting_store = meeting_store
        self._notification_sink = notification_sink
        self._booking_window = booking_window or BookingWindow()
        self._timezone = timezone
        self._auto_reset_seconds = auto_reset_seconds
        self._today = today or (lambda: pendulum.today(timezone).date())

        self._state = WorkflowState.IDLE
        self._host_id: Optional[int] = None
        self._date: Optional[str] = None
        self._slots: Optional[Tuple[TimeSlot, ...]] = None
        self._selected_slot: Optional[TimeSlot] = None
        self._failed_during: Optional[WorkflowState] = None
        self._last_error: Optional[BookingError] = None
        self._last_result: Optional[BookingResult] = None

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def host_id(self) -> Optional[int]:
        return self._host_id

    @property
    def date(self) -> Optional[str]:
        return self._date

    @property
    def slots(self) -> Tuple[TimeSlot, ...]:
        return self._slots or ()

    @property
    def selected_slot(self) -> Optional[TimeSlot]:
        return self._selected_slot

    @property
    def last_error(self) -> Optional[BookingError]:
        return self._last_error

    @property
    def last_result(self) -> Optional[BookingResult]:
        return self._last_result

    def available_dates(self) -> List[date]:
        """Days the guest may pick from, starting today."""
        return self._booking_window.dates(self._today())

    async def load_slots(self, host_id: int, date: str) -> Tuple[TimeSlot, ...]:
        """
        Fetch the host's slots for a day.

        Args:
            host_id: Identifier of the host whose calendar is queried
            date: Calendar day as YYYY-MM-DD; must fall inside the booking window

        Returns:
            The freshly loaded slots, in provider order

        Raises:
            ValidationFailure: If the date is malformed or outside the window
            WorkflowStateError: If an operation is in flight or the booking
                already succeeded
            FetchFailure: If the provider fails; the workflow is then FAILED
        """
        if self._state not in self._LOADABLE_FROM:
            raise WorkflowStateError(f"Cannot load slots while {self._state.value}")

        day = self._parse_day(date)
        if not self._booking_window.contains(day, self._today()):
            raise ValidationFailure(
                f"Date {date} is outside the {self._booking_window.days}-day booking window"
            )

        self._transition(WorkflowState.SLOTS_LOADING)
        self._host_id = host_id
        self._date = date
        self._slots = None
        self._selected_slot = None
        self._last_error = None

        try:
            slots = tuple(await self._slot_provider.get_available_slots(host_id, date))
        except BookingError as e:
            self._fail(e, during=WorkflowState.SLOTS_LOADING)
            raise
        except Exception as e:
            error = FetchFailure(f"Loading slots for host {host_id} on {date} failed: {e}")
            self._fail(error, during=WorkflowState.SLOTS_LOADING)
            raise error from e
        except BaseException:
            # cancellation must not leave the workflow stuck in flight
            self._fail(FetchFailure("Loading slots was cancelled"), during=WorkflowState.SLOTS_LOADING)
            raise

        self._slots = slots
        self._transition(WorkflowState.SLOTS_READY)
        return slots

    def select_slot(self, slot: TimeSlot) -> None:
        """
        Mark a loaded slot as the guest's choice.

        Raises:
            WorkflowStateError: If slots are not loaded
            ValidationFailure: If the slot is unknown or unavailable
        """
        if self._state is not WorkflowState.SLOTS_READY:
            raise WorkflowStateError(f"Cannot select a slot while {self._state.value}")
        if slot not in self.slots:
            raise ValidationFailure(f"Slot {slot} was not offered for {self._date}")
        if not slot.available:
            raise ValidationFailure(f"Slot {slot} is not available")

        self._selected_slot = slot

    async def submit_booking(
        self,
        host_id: int,
        guest_id: Optional[int],
        slot: Optional[TimeSlot] = None,
        title: str = "",
        description: Optional[str] = None,
    ) -> BookingResult:
        """
        Book the selected slot and notify the host.

        Args:
            host_id: The host; must be the one whose slots were loaded
            guest_id: The guest making the booking; None means unidentified
            slot: Optional, must equal the selected slot when given
            title: Meeting title, must not be blank
            description: Optional meeting description

        Returns:
            BookingResult with the new meeting and, if delivered, the notification

        Raises:
            ValidationFailure: On any rejected input; nothing is stored
            WorkflowStateError: If the workflow cannot submit right now
            FetchFailure: If the meeting could not be created; the workflow is
                then FAILED and the submission may be retried
        """
        if not self._can_submit():
            raise WorkflowStateError(f"Cannot submit a booking while {self._state.value}")

        self._validate_submission(host_id, guest_id, slot, title)
        chosen = self._selected_slot

        self._transition(WorkflowState.SUBMITTING)
        self._last_error = None

        try:
            meeting = await self._meeting_store.create_meeting(
                host_id=host_id,
                guest_id=guest_id,
                start_time=chosen.start_time,
                end_time=chosen.end_time,
                title=title.strip(),
                description=description,
            )
        except BookingError as e:
            self._fail(e, during=WorkflowState.SUBMITTING)
            raise
        except Exception as e:
            error = FetchFailure(f"Creating meeting for host {host_id} failed: {e}")
            self._fail(error, during=WorkflowState.SUBMITTING)
            raise error from e
        except BaseException:
            self._fail(FetchFailure("Booking submission was cancelled"), during=WorkflowState.SUBMITTING)
            raise

        try:
            notification = await self._notify_host(meeting, chosen)
        except BaseException:
            # the meeting is stored, so the booking stands even if delivery was cancelled
            self._last_result = BookingResult(meeting=meeting, notification=None)
            self._transition(WorkflowState.SUCCEEDED)
            raise

        self._last_result = BookingResult(meeting=meeting, notification=notification)
        self._transition(WorkflowState.SUCCEEDED)
        return self._last_result

    def reset(self) -> None:
        """Return to IDLE and forget slots, selection and errors."""
        if self._state in self._IN_FLIGHT:
            raise WorkflowStateError(f"Cannot reset while {self._state.value}")

        self._host_id = None
        self._date = None
        self._slots = None
        self._selected_slot = None
        self._failed_during = None
        self._last_error = None
        self._last_result = None
        self._transition(WorkflowState.IDLE)

    async def reset_after(self, delay: Optional[float] = None) -> None:
        """Sleep, then reset; used to dismiss a finished booking."""
        await asyncio.sleep(self._auto_reset_seconds if delay is None else delay)
        self.reset()

    async def _notify_host(self, meeting: Meeting, slot: TimeSlot) -> Optional[Notification]:
        try:
            start = slot.start_time.in_timezone(self._timezone)
            message = (
                f"{meeting.guest_id} wants to book a meeting with you on "
                f"{start.format('ddd, MMM D, YYYY')} at {start.format('h:mm A')}"
            )
            return await self._notification_sink.notify(
                recipient_id=meeting.host_id,
                sender_id=meeting.guest_id,
                type=NotificationType.BOOKING_REQUEST,
                meeting_id=meeting.id,
                message=message,
            )
        except Exception as e:
            logger.warning(
                "Meeting %s booked but notifying host %s failed: %s",
                meeting.id,
                meeting.host_id,
                e,
            )
            return None

    def _can_submit(self) -> bool:
        if self._state is WorkflowState.SLOTS_READY:
            return True
        # a failed submission keeps its slots and selection so it can be retried
        return (
            self._state is WorkflowState.FAILED
            and self._failed_during is WorkflowState.SUBMITTING
        )

    def _validate_submission(
        self,
        host_id: int,
        guest_id: Optional[int],
        slot: Optional[TimeSlot],
        title: str,
    ) -> None:
        if self._selected_slot is None:
            raise ValidationFailure("No slot selected")
        if slot is not None and slot != self._selected_slot:
            raise ValidationFailure(f"Slot {slot} is not the selected slot")
        if guest_id is None:
            raise ValidationFailure("Guest must be identified before booking")
        if guest_id == host_id:
            raise ValidationFailure("Cannot book a meeting with yourself")
        if host_id != self._host_id:
            raise ValidationFailure(
                f"Slots were loaded for host {self._host_id}, not {host_id}"
            )
        if not title or not title.strip():
            raise ValidationFailure("Meeting title must not be empty")

    def _parse_day(self, value: str) -> date:
        try:
            return pendulum.from_format(value, "YYYY-MM-DD").date()
        except (ValueError, TypeError) as e:
            raise ValidationFailure(f"Invalid date '{value}', expected YYYY-MM-DD") from e

    def _fail(self, error: BookingError, during: WorkflowState) -> None:
        self._last_error = error
        self._failed_during = during
        logger.debug("Failed while %s: %s", during.value, self._last_error)
        self._transition(WorkflowState.FAILED)

    def _transition(self, new_state: WorkflowState) -> None:
        logger.debug("Booking workflow %s -> %s", self._state.value, new_state.value)
        self._state = new_state
