"""
Collaborator protocols consumed by the conflict engine.

Defines the interface for the event store (owned by the surrounding CRM)
and the client directory used for ranking.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from conflict_engine.models.events import Event


class EventRepository(Protocol):
    """
    Protocol for the external event store.

    Implementations:
    - InMemoryEventRepository: Dict-backed store for tests and local use
    - Any CRM-backed adapter exposing the same three calls

    All methods are async. delete_event must treat an already-absent id as
    success so that deduplicated batch deletes stay safe.
    """

    @abstractmethod
    async def list_events(
        self,
        start: datetime,
        end: datetime,
    ) -> Sequence[Event]:
        """
        Get events overlapping a time window.

        Args:
            start: Window start (inclusive)
            end: Window end (exclusive)

        Returns:
            Sequence of events in the window
        """
        ...

    @abstractmethod
    async def delete_event(self, event_id: str) -> bool:
        """
        Delete an event.

        Args:
            event_id: Event to delete

        Returns:
            True once the event is gone (including when it was already absent)

        Raises:
            ActionFailure: If the store rejected the delete
        """
        ...

    @abstractmethod
    async def update_event(self, event_id: str, patch: dict[str, Any]) -> Event:
        """
        Apply a partial update to an event.

        Args:
            event_id: Event to update
            patch: Field name to new value

        Returns:
            Updated event

        Raises:
            ActionFailure: If the store rejected the update
        """
        ...


class ClientDirectory(Protocol):
    """Lookup of client display data by client id. Used only for ranking."""

    @abstractmethod
    def get_client_name(self, client_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def get_client_priority(self, client_id: str) -> Optional[int]:
        """Priority tier (1-10), or None when unknown."""
        ...
