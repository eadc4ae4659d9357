"""
In-memory implementations of the collaborator protocols.

Used by tests and by callers that keep the working event set in process.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from conflict_engine.exceptions import ActionFailure
from conflict_engine.integrations.base import ClientDirectory, EventRepository
from conflict_engine.models.events import Event

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "title",
    "start_time",
    "end_time",
    "duration",
    "priority",
    "event_type",
    "client_id",
    "client_name",
    "location",
    "service_type",
}


class InMemoryEventRepository(EventRepository):
    """
    EventRepository backed by a dict keyed by event id.

    Records every delete call (including repeats) in `delete_calls` so
    callers can verify how many actions actually reached the store.
    """

    def __init__(self, events: Optional[Iterable[Event]] = None):
        self._events: dict[str, Event] = {}
        self.delete_calls: list[str] = []
        self.update_calls: list[tuple[str, dict]] = []
        for event in events or []:
            self.add(event)

    def add(self, event: Event) -> None:
        if event.id is None:
            raise ValueError("Stored events need an id")
        self._events[event.id] = event

    def get(self, event_id: str) -> Optional[Event]:
        return self._events.get(event_id)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._events

    def __len__(self) -> int:
        return len(self._events)

    async def list_events(self, start: datetime, end: datetime) -> Sequence[Event]:
        events = [
            e for e in self._events.values()
            if e.start_time < end and e.end_time > start
        ]
        return sorted(events, key=lambda e: e.start_time)

    async def delete_event(self, event_id: str) -> bool:
        self.delete_calls.append(event_id)
        if self._events.pop(event_id, None) is None:
            logger.debug(f"Delete of absent event {event_id} treated as success")
        return True

    async def update_event(self, event_id: str, patch: dict[str, Any]) -> Event:
        self.update_calls.append((event_id, dict(patch)))
        event = self._events.get(event_id)
        if event is None:
            raise ActionFailure(f"Event {event_id} not found", event_id=event_id)

        unknown = set(patch) - _UPDATABLE_FIELDS
        if unknown:
            raise ActionFailure(
                f"Cannot update fields {sorted(unknown)} on event {event_id}",
                event_id=event_id,
            )

        updated = replace(event, **patch)
        if "start_time" in patch or "end_time" in patch:
            updated = updated.with_times(updated.start_time, updated.end_time)
        self._events[event_id] = updated
        return updated


class StaticClientDirectory(ClientDirectory):
    """ClientDirectory over fixed dicts."""

    def __init__(
        self,
        names: Optional[dict[str, str]] = None,
        priorities: Optional[dict[str, int]] = None,
    ):
        self._names = names or {}
        self._priorities = priorities or {}

    def get_client_name(self, client_id: str) -> Optional[str]:
        return self._names.get(client_id)

    def get_client_priority(self, client_id: str) -> Optional[int]:
        return self._priorities.get(client_id)
