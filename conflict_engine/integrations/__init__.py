"""
External collaborators of the conflict engine.

Provides:
- EventRepository / ClientDirectory protocols
- In-memory implementations
"""

from conflict_engine.integrations.base import ClientDirectory, EventRepository
from conflict_engine.integrations.memory import (
    InMemoryEventRepository,
    StaticClientDirectory,
)

__all__ = [
    "ClientDirectory",
    "EventRepository",
    "InMemoryEventRepository",
    "StaticClientDirectory",
]
