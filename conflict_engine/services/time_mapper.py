"""
Reschedule time mapping.

Converts a completed drag/drop or resize gesture into precise event times.
The UI owns gesture tracking; these functions run once on drop and their
output is conflict-checked before anything is persisted.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal, Optional

from conflict_engine.config import get_settings
from conflict_engine.exceptions import DetectionError
from conflict_engine.models.events import Event

logger = logging.getLogger(__name__)

ResizeEdge = Literal["start", "end"]


@dataclass(frozen=True)
class DropSlot:
    """
    A calendar grid cell.

    minute is optional: when absent, a drop keeps the event's own minutes
    past the hour instead of snapping to the top of the slot.
    """

    date: date
    hour: int
    minute: Optional[int] = None

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Slot hour out of range: {self.hour}")
        if self.minute is not None and not 0 <= self.minute <= 59:
            raise ValueError(f"Slot minute out of range: {self.minute}")


@dataclass(frozen=True)
class TimeMapping:
    """New interval for an event after a move or resize."""

    new_start: datetime
    new_end: datetime
    duration: int

    def to_patch(self) -> dict:
        """Field updates for EventRepository.update_event."""
        return {
            "start_time": self.new_start,
            "end_time": self.new_end,
            "duration": self.duration,
        }

    def apply_to(self, event: Event) -> Event:
        """Proposed state of the event, ready for conflict detection."""
        return event.with_times(self.new_start, self.new_end)


def snap_time_to_interval(value: datetime, snap_minutes: int) -> datetime:
    """
    Round a time to the nearest snap boundary (halves round up).

    Args:
        value: Time to snap
        snap_minutes: Granularity in minutes

    Returns:
        Snapped time with seconds and microseconds cleared
    """
    if snap_minutes < 1:
        raise ValueError("snap_minutes must be at least 1")
    hour_start = value.replace(minute=0, second=0, microsecond=0)
    minutes = value.minute + value.second / 60 + value.microsecond / 60_000_000
    snapped = int(minutes / snap_minutes + 0.5) * snap_minutes
    return hour_start + timedelta(minutes=snapped)


def _slot_hour(slot: DropSlot) -> datetime:
    return datetime(slot.date.year, slot.date.month, slot.date.day, slot.hour)


def map_drag_drop(event: Event, from_slot: DropSlot, to_slot: DropSlot) -> TimeMapping:
    """
    Move an event from one slot to another, preserving duration.

    The event shifts by the distance between the slot it was grabbed on and
    the slot it was dropped on, so its minutes past the hour and its offset
    from the grab point are kept: a 10:15 event dragged from the 10:00 slot
    to the 14:00 slot starts at 14:15, and a 10:15-12:15 event grabbed on
    its 11:00 row and dropped on 12:00 starts at 11:15. An explicit minute
    on the destination slot replaces the start's minutes.

    Args:
        event: Event being moved
        from_slot: Slot the drag started on
        to_slot: Slot the event was dropped on

    Returns:
        TimeMapping with the same duration as the event
    """
    original_start = event.start_time
    duration = event.end_time - original_start

    if from_slot == to_slot:
        return TimeMapping(
            new_start=original_start,
            new_end=event.end_time,
            duration=int(duration.total_seconds() // 60),
        )

    new_start = original_start + (_slot_hour(to_slot) - _slot_hour(from_slot))
    if to_slot.minute is not None:
        new_start = new_start.replace(minute=to_slot.minute, second=0, microsecond=0)
    new_end = new_start + duration

    logger.debug(
        f"Drag {event.id}: {from_slot.date} {from_slot.hour:02d}h -> "
        f"{to_slot.date} {to_slot.hour:02d}h, {original_start} -> {new_start}"
    )
    return TimeMapping(
        new_start=new_start,
        new_end=new_end,
        duration=int(duration.total_seconds() // 60),
    )


def map_resize(
    event: Event,
    edge: ResizeEdge,
    new_time: datetime,
    snap_minutes: Optional[int] = None,
    min_duration_minutes: Optional[int] = None,
) -> TimeMapping:
    """
    Move one edge of an event, keeping the other fixed.

    The moving edge snaps to the configured granularity and the result is
    never shorter than the minimum duration.

    Args:
        event: Event being resized
        edge: 'start' (top handle) or 'end' (bottom handle)
        new_time: Where the handle was released
        snap_minutes: Granularity (settings.resize_snap_minutes if None)
        min_duration_minutes: Floor (settings.min_event_duration_minutes if None)

    Returns:
        TimeMapping with the fixed edge unchanged

    Raises:
        ValueError: If edge is unknown or snap_minutes is below 1
    """
    if snap_minutes is None or min_duration_minutes is None:
        settings = get_settings()
        if snap_minutes is None:
            snap_minutes = settings.resize_snap_minutes
        if min_duration_minutes is None:
            min_duration_minutes = settings.min_event_duration_minutes
    snap = snap_minutes
    floor = timedelta(minutes=min_duration_minutes)

    start, end = event.start_time, event.end_time
    snapped = snap_time_to_interval(new_time, snap)

    if edge == "start":
        start = min(snapped, end - floor)
    elif edge == "end":
        end = max(snapped, start + floor)
    else:
        raise ValueError(f"Unknown resize edge: {edge!r}")

    if start >= end:
        raise DetectionError(f"Resize of event {event.id} produced an empty interval")

    return TimeMapping(
        new_start=start,
        new_end=end,
        duration=int((end - start).total_seconds() // 60),
    )
