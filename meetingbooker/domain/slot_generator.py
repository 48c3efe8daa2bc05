"""
Generation of candidate time slots for a host's day.

There is no calendar behind this: slots are laid out back to back across the
working hours and each one is marked available at random. The random source is
injected so callers (and tests) can make the output deterministic.
"""

import random
from datetime import date, time
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .models import TimeSlot


class SlotGenerator:
    """
    Lays out fixed-length slots between a daily start and end time.

    With the defaults this yields eight one-hour slots, 09:00 to 17:00.
    """

    def __init__(
        self,
        start_time: time = time(9, 0),
        end_time: time = time(17, 0),
        duration_minutes: int = 60,
        availability_ratio: float = 0.7,
        timezone: str = "UTC",
        rng: Optional[random.Random] = None,
    ):
        if duration_minutes <= 0:
            raise ValueError(f"Slot duration must be positive, got {duration_minutes}")
        if end_time <= start_time:
            raise ValueError(f"End time {end_time} must be after start time {start_time}")
        if not 0.0 <= availability_ratio <= 1.0:
            raise ValueError(
                f"Availability ratio must be between 0 and 1, got {availability_ratio}"
            )

        self.start_time = start_time
        self.end_time = end_time
        self.duration_minutes = duration_minutes
        self.availability_ratio = availability_ratio
        self.timezone = timezone
        self._rng = rng or random.Random()

    def generate(self, day: date, rng: Optional[random.Random] = None) -> List[TimeSlot]:
        """
        Generate the slots for one calendar day.

        Args:
            day: The calendar day to lay slots out on
            rng: Random source for this call; defaults to the generator's own

        Returns:
            Slots in chronological order; a trailing remainder shorter than
            one slot is dropped
        """
        day_start = self._at(day, self.start_time)
        day_end = self._at(day, self.end_time)

        rng = rng or self._rng
        slots: List[TimeSlot] = []
        current = day_start

        while current.add(minutes=self.duration_minutes) <= day_end:
            slot_end = current.add(minutes=self.duration_minutes)
            slots.append(
                TimeSlot(
                    start_time=current,
                    end_time=slot_end,
                    available=self._is_available(rng),
                )
            )
            current = slot_end

        return slots

    def _is_available(self, rng: random.Random) -> bool:
        # random() is in [0, 1), so a ratio of 1.0 always yields True and 0.0 never does
        return rng.random() < self.availability_ratio

    def _at(self, day: date, at: time) -> DateTime:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            at.hour,
            at.minute,
            tz=self.timezone,
        )
