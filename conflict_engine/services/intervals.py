"""
Interval arithmetic over half-open [start, end) time ranges.

Pure functions; accept Events (or anything with start_time/end_time) and
plain (start, end) tuples.
"""

import math
from datetime import datetime
from typing import Optional, Union

from conflict_engine.exceptions import DetectionError
from conflict_engine.models.conflicts import TimeOverlap
from conflict_engine.models.events import Event

IntervalLike = Union[Event, tuple[datetime, datetime]]


def bounds(interval: IntervalLike) -> tuple[datetime, datetime]:
    """Return (start, end) for an Event or a tuple."""
    if isinstance(interval, tuple):
        return interval
    return interval.start_time, interval.end_time


def duration_minutes(interval: IntervalLike) -> float:
    start, end = bounds(interval)
    return (end - start).total_seconds() / 60


def overlaps(a: IntervalLike, b: IntervalLike) -> Optional[TimeOverlap]:
    """
    Intersection of two intervals.

    Adjacent intervals (a.end == b.start) do not overlap.

    Returns:
        TimeOverlap with a positive duration, or None
    """
    a_start, a_end = bounds(a)
    b_start, b_end = bounds(b)

    if a_end <= b_start or b_end <= a_start:
        return None

    start = max(a_start, b_start)
    end = min(a_end, b_end)
    # Sub-minute intersections round up so a real overlap never reports 0
    minutes = math.ceil((end - start).total_seconds() / 60)
    return TimeOverlap(start=start, end=end, duration_minutes=minutes)


def overlap_ratio(overlap: TimeOverlap, a: IntervalLike, b: IntervalLike) -> float:
    """Overlap as a share of the shorter of the two intervals."""
    shorter = min(duration_minutes(a), duration_minutes(b))
    if shorter <= 0:
        return 1.0
    return min(1.0, overlap.duration_minutes / shorter)


def validate_interval(interval: IntervalLike, label: str = "Event") -> None:
    """
    Raise DetectionError for malformed intervals.

    Raises:
        DetectionError: If start >= end
    """
    start, end = bounds(interval)
    if start >= end:
        raise DetectionError(
            f"{label} has a malformed interval: start {start.isoformat()} "
            f"is not before end {end.isoformat()}"
        )
