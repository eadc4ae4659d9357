"""
Conflict detection result types.

Entities:
- TimeOverlap: Derived overlap between two intervals
- ConflictDetail: One detected collision
- ConflictResult: Detection output for one proposed event
- ResolutionSuggestion: Suggested way out of a non-empty result
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from conflict_engine.models.events import Event

ConflictType = Literal[
    "time_overlap",
    "business_rule",
    "buffer_violation",
    "resource_conflict",
    "client_preference",
]
ConflictSeverity = Literal["warning", "error", "critical"]
SuggestionStrategy = Literal["cancel", "allow", "reschedule"]

# warning < error < critical
SEVERITY_ORDER: dict[str, int] = {"warning": 1, "error": 2, "critical": 3}

TRANSIENT_PROPOSAL_ID = "proposed"


def build_conflict_id(proposal_id: Optional[str], subject_id: str, conflict_type: str) -> str:
    """
    Deterministic conflict identity.

    The same (proposal, conflicting event or rule, type) triple always yields
    the same id, so stored resolutions match across re-detections.
    """
    return f"{proposal_id or TRANSIENT_PROPOSAL_ID}:{subject_id}:{conflict_type}"


@dataclass(frozen=True)
class TimeOverlap:
    """Intersection of two [start, end) intervals. Only exists when positive."""

    start: datetime
    end: datetime
    duration_minutes: int


@dataclass
class ConflictDetail:
    """
    One detected collision.

    For self-violations (work hours, work days, blackouts, priority client
    limits) `conflicting_event` is the proposal itself rather than an
    existing event.
    """

    id: str
    type: ConflictType
    severity: ConflictSeverity
    conflicting_event: Event
    proposed_event: Event
    message: str
    time_overlap: Optional[TimeOverlap] = None
    rule_id: Optional[str] = None

    @property
    def is_self_conflict(self) -> bool:
        return self.conflicting_event is self.proposed_event or (
            self.conflicting_event.id is not None
            and self.conflicting_event.id == self.proposed_event.id
        )

    @property
    def severity_rank(self) -> int:
        return SEVERITY_ORDER[self.severity]


@dataclass
class AlternativeSlot:
    start: datetime
    end: datetime
    confidence: float


@dataclass
class ResolutionSuggestion:
    strategy: SuggestionStrategy
    description: str
    estimated_impact: str
    requires_client_notification: bool
    alternative_slots: list[AlternativeSlot] = field(default_factory=list)


@dataclass
class ConflictResult:
    """
    Detection output for one proposed event.

    `has_conflicts` and `can_proceed` are derived from `conflicts` on every
    access and never stored.
    """

    conflicts: list[ConflictDetail] = field(default_factory=list)
    suggestions: list[ResolutionSuggestion] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def can_proceed(self) -> bool:
        return not any(c.severity == "critical" for c in self.conflicts)

    @property
    def critical_conflicts(self) -> list[ConflictDetail]:
        return [c for c in self.conflicts if c.severity == "critical"]

    def get(self, conflict_id: str) -> Optional[ConflictDetail]:
        for conflict in self.conflicts:
            if conflict.id == conflict_id:
                return conflict
        return None
