"""
Event representation used by the conflict engine.

Events are created and stored by the surrounding CRM. The engine only reads
them, or builds proposals that do not exist in storage yet.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

from dateutil import parser as date_parser

EventPriority = Literal["urgent", "high", "medium", "low"]
EventType = Literal["event", "task"]

DEFAULT_DURATION_MINUTES = 60

EVENT_PRIORITIES: tuple[str, ...] = ("urgent", "high", "medium", "low")


@dataclass
class Event:
    """
    The unit being scheduled.

    `end_time` and `duration` are kept in sync on construction: a missing end
    is derived from the duration, a missing duration from the end.
    """

    id: Optional[str]
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    priority: EventPriority = "medium"
    event_type: EventType = "event"
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    location: Optional[str] = None
    service_type: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.end_time is None:
            minutes = self.duration if self.duration is not None else DEFAULT_DURATION_MINUTES
            self.end_time = self.start_time + timedelta(minutes=minutes)
        if self.duration is None:
            self.duration = int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def duration_minutes(self) -> float:
        """Duration measured from the timestamps, in minutes."""
        return (self.end_time - self.start_time).total_seconds() / 60

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def with_times(self, start: datetime, end: datetime) -> "Event":
        """Copy of this event moved to a new interval, duration recomputed."""
        return replace(
            self,
            start_time=start,
            end_time=end,
            duration=int((end - start).total_seconds() // 60),
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Event":
        """
        Build an Event from the CRM's camelCase JSON shape.

        Args:
            payload: Dict with startDateTime, endDateTime, duration, clientName, ...

        Returns:
            Event with parsed timestamps

        Raises:
            ValueError: If startDateTime is missing or unparseable
        """
        start_raw = payload.get("startDateTime")
        if not start_raw:
            raise ValueError(f"Event payload missing startDateTime: {payload.get('id')}")

        end_raw = payload.get("endDateTime")
        return cls(
            id=payload.get("id"),
            title=payload.get("title", ""),
            start_time=date_parser.isoparse(start_raw),
            end_time=date_parser.isoparse(end_raw) if end_raw else None,
            duration=payload.get("duration"),
            priority=payload.get("priority", "medium"),
            event_type=payload.get("type", "event"),
            client_id=payload.get("clientId"),
            client_name=payload.get("clientName"),
            location=payload.get("location"),
            service_type=payload.get("serviceType"),
        )

    def to_payload(self) -> dict[str, Any]:
        """Inverse of from_payload, used for audit snapshots."""
        return {
            "id": self.id,
            "title": self.title,
            "startDateTime": self.start_time.isoformat(),
            "endDateTime": self.end_time.isoformat(),
            "duration": self.duration,
            "priority": self.priority,
            "type": self.event_type,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "location": self.location,
            "serviceType": self.service_type,
        }
