"""
Models for the scheduling-conflict engine.

Exports the SQLAlchemy models (so metadata discovery sees them) and the
dataclasses the detection pipeline passes around.
"""

from conflict_engine.models.base import Base, BaseModel, get_json_type
from conflict_engine.models.events import Event, EventPriority, EventType, EVENT_PRIORITIES
from conflict_engine.models.conflicts import (
    AlternativeSlot,
    ConflictDetail,
    ConflictResult,
    ConflictSeverity,
    ConflictType,
    ResolutionSuggestion,
    SEVERITY_ORDER,
    TimeOverlap,
    build_conflict_id,
)
from conflict_engine.models.resolutions import (
    ConflictResolution,
    ResolutionData,
    ResolutionType,
    RESOLUTION_TYPES,
)

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "get_json_type",
    # Events
    "Event",
    "EventPriority",
    "EventType",
    "EVENT_PRIORITIES",
    # Conflicts
    "AlternativeSlot",
    "ConflictDetail",
    "ConflictResult",
    "ConflictSeverity",
    "ConflictType",
    "ResolutionSuggestion",
    "SEVERITY_ORDER",
    "TimeOverlap",
    "build_conflict_id",
    # Resolutions
    "ConflictResolution",
    "ResolutionData",
    "ResolutionType",
    "RESOLUTION_TYPES",
]
