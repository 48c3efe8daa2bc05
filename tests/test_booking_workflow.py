"""
Tests for the BookingWorkflow state machine.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

import pendulum
import pytest

from meetingbooker.domain.exceptions import FetchFailure, ValidationFailure, WorkflowStateError
from meetingbooker.domain.models import (
    BookingWindow,
    Meeting,
    MeetingStatus,
    Notification,
    NotificationType,
    TimeSlot,
)
from meetingbooker.services.booking_workflow import BookingWorkflow, WorkflowState

TODAY = pendulum.date(2025, 5, 30)


class StubSlotProvider:
    """Eight one-hour slots, 09:00-17:00; the first one is taken."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Dict] = []

    async def get_available_slots(self, host_id, date):
        self.calls.append({"host_id": host_id, "date": date})
        if self.error is not None:
            raise self.error

        day = pendulum.from_format(date, "YYYY-MM-DD", tz="UTC")
        return [
            TimeSlot(
                start_time=day.set(hour=hour),
                end_time=day.set(hour=hour + 1),
                available=hour != 9,
            )
            for hour in range(9, 17)
        ]


class StubMeetingStore:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Dict] = []

    async def create_meeting(self, host_id, guest_id, start_time, end_time, title, description=None):
        self.calls.append({"host_id": host_id, "guest_id": guest_id, "title": title})
        if self.error is not None:
            raise self.error

        return Meeting(
            id=f"meeting-{len(self.calls)}",
            host_id=host_id,
            guest_id=guest_id,
            start_time=start_time,
            end_time=end_time,
            title=title,
            description=description,
        )

    async def list_meetings_for(self, user_id):
        return []


class StubNotificationSink:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Dict] = []

    async def notify(self, recipient_id, sender_id, type, meeting_id, message):
        self.calls.append(
            {
                "recipient_id": recipient_id,
                "sender_id": sender_id,
                "type": type,
                "meeting_id": meeting_id,
                "message": message,
            }
        )
        if self.error is not None:
            raise self.error

        return Notification(
            id="notification-1",
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            meeting_id=meeting_id,
            message=message,
        )

    async def mark_read(self, notification_id):
        return None


def _build_workflow(provider=None, store=None, sink=None) -> BookingWorkflow:
    return BookingWorkflow(
        slot_provider=provider or StubSlotProvider(),
        meeting_store=store or StubMeetingStore(),
        notification_sink=sink or StubNotificationSink(),
        booking_window=BookingWindow(days=14),
        today=lambda: TODAY,
    )


def _first_available(workflow: BookingWorkflow) -> TimeSlot:
    return next(slot for slot in workflow.slots if slot.available)


def test_end_to_end_booking():
    """Load, select, submit: one meeting, one notification to the host."""
    store = StubMeetingStore()
    sink = StubNotificationSink()
    workflow = _build_workflow(store=store, sink=sink)

    slots = asyncio.run(workflow.load_slots(42, "2025-06-01"))

    assert len(slots) == 8
    assert slots[0].start_time.hour == 9
    assert slots[-1].end_time.hour == 17
    assert workflow.state is WorkflowState.SLOTS_READY

    slot = _first_available(workflow)
    workflow.select_slot(slot)
    result = asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.SUCCEEDED
    assert result.meeting.host_id == 42
    assert result.meeting.guest_id == 99
    assert len(store.calls) == 1
    assert result.meeting.status is MeetingStatus.SCHEDULED
    assert len(store.calls) == 1
    assert len(sink.calls) == 1
    assert sink.calls[0]["recipient_id"] == 42
    assert sink.calls[0]["sender_id"] == 99
    assert sink.calls[0]["type"] is NotificationType.BOOKING_REQUEST
    assert sink.calls[0]["meeting_id"] == result.meeting.id
    assert result.notification is not None


def test_slots_have_start_before_end_across_window():
    workflow = _build_workflow()

    for day in workflow.available_dates():
        slots = asyncio.run(workflow.load_slots(42, day.to_date_string()))
        assert slots
        assert all(slot.start_time < slot.end_time for slot in slots)


def test_load_slots_twice_returns_identical_sequences():
    workflow = _build_workflow()

    first = asyncio.run(workflow.load_slots(42, "2025-06-01"))
    second = asyncio.run(workflow.load_slots(42, "2025-06-01"))

    assert first == second


def test_reload_clears_selection_and_queries_again():
    provider = StubSlotProvider()
    workflow = _build_workflow(provider=provider)

    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    workflow.select_slot(_first_available(workflow))
    asyncio.run(workflow.load_slots(42, "2025-06-02"))

    assert workflow.selected_slot is None
    assert len(provider.calls) == 2


@pytest.mark.parametrize("date", ["2025-05-29", "2025-06-13", "01.06.2025", "not-a-date"])
def test_load_slots_rejects_dates_outside_window(date):
    provider = StubSlotProvider()
    workflow = _build_workflow(provider=provider)

    with pytest.raises(ValidationFailure):
        asyncio.run(workflow.load_slots(42, date))

    assert workflow.state is WorkflowState.IDLE
    assert provider.calls == []


def test_load_slots_failure_moves_to_failed_and_allows_retry():
    provider = StubSlotProvider(error=FetchFailure("calendar unreachable"))
    workflow = _build_workflow(provider=provider)

    with pytest.raises(FetchFailure):
        asyncio.run(workflow.load_slots(42, "2025-06-01"))

    assert workflow.state is WorkflowState.FAILED
    assert isinstance(workflow.last_error, FetchFailure)

    provider.error = None
    asyncio.run(workflow.load_slots(42, "2025-06-01"))

    assert workflow.state is WorkflowState.SLOTS_READY
    assert workflow.last_error is None


def test_unexpected_provider_error_is_wrapped_as_fetch_failure():
    workflow = _build_workflow(provider=StubSlotProvider(error=ConnectionError("reset")))

    with pytest.raises(FetchFailure, match="reset"):
        asyncio.run(workflow.load_slots(42, "2025-06-01"))

    assert workflow.state is WorkflowState.FAILED


def test_select_unavailable_slot_is_rejected():
    workflow = _build_workflow()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    busy = workflow.slots[0]
    assert not busy.available

    with pytest.raises(ValidationFailure):
        workflow.select_slot(busy)

    assert workflow.state is WorkflowState.SLOTS_READY
    assert workflow.selected_slot is None


def test_select_slot_not_offered_is_rejected():
    workflow = _build_workflow()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    foreign = TimeSlot(
        start_time=pendulum.datetime(2025, 6, 1, 20),
        end_time=pendulum.datetime(2025, 6, 1, 21),
    )

    with pytest.raises(ValidationFailure):
        workflow.select_slot(foreign)


def test_select_slot_before_loading_is_rejected():
    workflow = _build_workflow()
    slot = TimeSlot(
        start_time=pendulum.datetime(2025, 6, 1, 9),
        end_time=pendulum.datetime(2025, 6, 1, 10),
    )

    with pytest.raises(WorkflowStateError):
        workflow.select_slot(slot)

    assert workflow.state is WorkflowState.IDLE


def test_submit_without_selection_creates_no_meeting():
    store = StubMeetingStore()
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))

    with pytest.raises(ValidationFailure):
        asyncio.run(workflow.submit_booking(42, 99, None, "Sync"))

    assert store.calls == []
    assert workflow.state is WorkflowState.SLOTS_READY


def test_self_booking_is_rejected_without_touching_store():
    store = StubMeetingStore()
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    with pytest.raises(ValidationFailure):
        asyncio.run(workflow.submit_booking(42, 42, slot, "Sync"))

    assert store.calls == []
    assert workflow.state is WorkflowState.SLOTS_READY


@pytest.mark.parametrize(
    "host_id, guest_id, title",
    [
        (42, None, "Sync"),   # unidentified guest
        (7, 99, "Sync"),      # slots were loaded for another host
        (42, 99, "   "),      # blank title
    ],
)
def test_invalid_submissions_are_rejected(host_id, guest_id, title):
    store = StubMeetingStore()
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    with pytest.raises(ValidationFailure):
        asyncio.run(workflow.submit_booking(host_id, guest_id, slot, title))

    assert store.calls == []
    assert workflow.state is WorkflowState.SLOTS_READY


def test_submit_with_different_slot_than_selected_is_rejected():
    workflow = _build_workflow()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    available = [slot for slot in workflow.slots if slot.available]
    workflow.select_slot(available[0])

    with pytest.raises(ValidationFailure):
        asyncio.run(workflow.submit_booking(42, 99, available[1], "Sync"))


def test_submit_uses_selected_slot_when_none_given():
    workflow = _build_workflow()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    result = asyncio.run(workflow.submit_booking(42, 99, title="Sync"))

    assert result.meeting.start_time == slot.start_time
    assert result.meeting.end_time == slot.end_time


def test_notification_failure_does_not_fail_booking(caplog):
    store = StubMeetingStore()
    sink = StubNotificationSink(error=FetchFailure("sink down"))
    workflow = _build_workflow(store=store, sink=sink)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    with caplog.at_level(logging.WARNING):
        result = asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.SUCCEEDED
    assert result.meeting.status is MeetingStatus.SCHEDULED
    assert result.notification is None
    assert len(store.calls) == 1
    assert len(sink.calls) == 1
    assert "sink down" in caplog.text


def test_meeting_creation_failure_fails_workflow_and_skips_notification():
    store = StubMeetingStore(error=FetchFailure("store down"))
    sink = StubNotificationSink()
    workflow = _build_workflow(store=store, sink=sink)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    with pytest.raises(FetchFailure):
        asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.FAILED
    assert sink.calls == []

    # selection survives, so the caller can simply try again
    store.error = None
    result = asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.SUCCEEDED
    assert result.meeting.host_id == 42


def test_submit_after_load_failure_is_rejected():
    workflow = _build_workflow(provider=StubSlotProvider(error=FetchFailure("down")))

    with pytest.raises(FetchFailure):
        asyncio.run(workflow.load_slots(42, "2025-06-01"))

    with pytest.raises(WorkflowStateError):
        asyncio.run(workflow.submit_booking(42, 99, None, "Sync"))


def test_load_while_loading_is_rejected():
    release = asyncio.Event()

    class SlowSlotProvider(StubSlotProvider):
        async def get_available_slots(self, host_id, date):
            await release.wait()
            return await super().get_available_slots(host_id, date)

    workflow = _build_workflow(provider=SlowSlotProvider())

    async def scenario():
        pending = asyncio.create_task(workflow.load_slots(42, "2025-06-01"))
        await asyncio.sleep(0)
        assert workflow.state is WorkflowState.SLOTS_LOADING

        with pytest.raises(WorkflowStateError):
            await workflow.load_slots(42, "2025-06-02")
        with pytest.raises(WorkflowStateError):
            workflow.reset()

        release.set()
        return await pending

    slots = asyncio.run(scenario())

    assert len(slots) == 8
    assert workflow.date == "2025-06-01"
    assert workflow.state is WorkflowState.SLOTS_READY


def test_second_submit_after_success_is_rejected():
    store = StubMeetingStore()
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)
    asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    with pytest.raises(WorkflowStateError):
        asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert len(store.calls) == 1


def test_reset_after_returns_to_idle():
    workflow = _build_workflow()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)
    asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    asyncio.run(workflow.reset_after(0))

    assert workflow.state is WorkflowState.IDLE
    assert workflow.slots == ()
    assert workflow.selected_slot is None
    assert workflow.last_result is None


class SlowMeetingStore(StubMeetingStore):
    """Blocks in create_meeting until ``release`` is set."""

    def __init__(self, release: asyncio.Event):
        super().__init__()
        self.release = release

    async def create_meeting(self, *args, **kwargs):
        await self.release.wait()
        return await super().create_meeting(*args, **kwargs)


def test_submit_and_load_while_submitting_are_rejected():
    release = asyncio.Event()
    store = SlowMeetingStore(release)
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    async def scenario():
        pending = asyncio.create_task(workflow.submit_booking(42, 99, slot, "Sync"))
        await asyncio.sleep(0)
        assert workflow.state is WorkflowState.SUBMITTING

        with pytest.raises(WorkflowStateError):
            await workflow.submit_booking(42, 99, slot, "Sync")
        with pytest.raises(WorkflowStateError):
            await workflow.load_slots(42, "2025-06-02")

        release.set()
        return await pending

    result = asyncio.run(scenario())

    assert len(store.calls) == 1
    assert result.meeting.host_id == 42
    assert workflow.state is WorkflowState.SUCCEEDED


def test_cancelled_load_leaves_workflow_recoverable():
    class HangingSlotProvider(StubSlotProvider):
        async def get_available_slots(self, host_id, date):
            await asyncio.Event().wait()

    workflow = _build_workflow(provider=HangingSlotProvider())

    async def scenario():
        pending = asyncio.create_task(workflow.load_slots(42, "2025-06-01"))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

    asyncio.run(scenario())

    assert workflow.state is WorkflowState.FAILED
    assert isinstance(workflow.last_error, FetchFailure)

    workflow.reset()
    assert workflow.state is WorkflowState.IDLE

    workflow._slot_provider = StubSlotProvider()
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    assert workflow.state is WorkflowState.SLOTS_READY


def test_cancelled_submit_can_be_retried():
    release = asyncio.Event()
    store = SlowMeetingStore(release)
    workflow = _build_workflow(store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = _first_available(workflow)
    workflow.select_slot(slot)

    async def scenario():
        pending = asyncio.create_task(workflow.submit_booking(42, 99, slot, "Sync"))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

    asyncio.run(scenario())

    assert workflow.state is WorkflowState.FAILED
    assert workflow.selected_slot == slot

    release.set()
    result = asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.SUCCEEDED
    assert result.meeting.guest_id == 99


def test_message_formatting_error_does_not_fail_booking(caplog):
    """Slots with plain datetimes cannot be formatted; the booking still succeeds."""
    class PlainDatetimeProvider(StubSlotProvider):
        async def get_available_slots(self, host_id, date):
            return [TimeSlot(start_time=datetime(2025, 6, 1, 9), end_time=datetime(2025, 6, 1, 10))]

    store = StubMeetingStore()
    workflow = _build_workflow(provider=PlainDatetimeProvider(), store=store)
    asyncio.run(workflow.load_slots(42, "2025-06-01"))
    slot = workflow.slots[0]
    workflow.select_slot(slot)

    with caplog.at_level(logging.WARNING):
        result = asyncio.run(workflow.submit_booking(42, 99, slot, "Sync"))

    assert workflow.state is WorkflowState.SUCCEEDED
    assert result.notification is None
    assert len(store.calls) == 1
