"""
Business rules evaluated against a proposed event.

Every rule reports RuleViolation entries. A violation without a subject
event is a self-violation: its conflicting event is the proposal itself.
Proposal-only rules (work hours, work days, blackouts) implement
evaluate(proposed) and inherit check() from ProposalRule. Rules that look
at neighbouring events (buffer time, shared resources, priority client
limits) implement check() directly.
"""

import re
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime, time
from typing import ClassVar, Optional, Protocol, Sequence

from conflict_engine.config import Settings, get_settings
from conflict_engine.models.conflicts import ConflictSeverity, ConflictType
from conflict_engine.models.events import Event
from conflict_engine.services.intervals import overlaps

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


@dataclass(frozen=True)
class RuleViolation:
    """One breach of a rule. `subject` is None for a self-violation."""

    message: str
    subject: Optional[Event] = None


class BusinessRule(Protocol):
    """Standing policy a proposal can violate."""

    rule_id: str
    severity: ConflictSeverity
    enabled: bool
    conflict_type: ConflictType

    @abstractmethod
    def check(self, proposed: Event, candidates: Sequence[Event]) -> list[RuleViolation]:
        """
        Check the proposal against the rule.

        Args:
            proposed: Event being scheduled
            candidates: Well-formed existing events, the proposal excluded

        Returns:
            Violations in candidate order (empty when the rule holds)
        """
        ...


class ProposalRule:
    """Base for rules that only look at the proposal itself."""

    conflict_type: ClassVar[ConflictType] = "business_rule"

    def evaluate(self, proposed: Event) -> Optional[str]:
        raise NotImplementedError

    def check(self, proposed: Event, candidates: Sequence[Event]) -> list[RuleViolation]:
        message = self.evaluate(proposed)
        return [] if message is None else [RuleViolation(message)]


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


@dataclass
class WorkHoursRule(ProposalRule):
    """Proposal must start and end inside the working day."""

    start: str = "08:00"
    end: str = "18:00"
    severity: ConflictSeverity = "warning"
    enabled: bool = True
    rule_id: str = "work_hours"

    def evaluate(self, proposed: Event) -> Optional[str]:
        opens = _parse_hhmm(self.start)
        closes = _parse_hhmm(self.end)
        starts_early = proposed.start_time.time() < opens
        spills_over = proposed.end_time.date() > proposed.start_time.date()
        ends_late = spills_over or proposed.end_time.time() > closes
        if starts_early or ends_late:
            return f"Event scheduled outside work hours ({self.start}-{self.end})"
        return None


@dataclass
class WorkDaysRule(ProposalRule):
    """Proposal must fall on a working day (ISO weekday numbers)."""

    days: Sequence[int] = (1, 2, 3, 4, 5)
    severity: ConflictSeverity = "warning"
    enabled: bool = True
    rule_id: str = "work_days"

    def evaluate(self, proposed: Event) -> Optional[str]:
        weekday = proposed.start_time.isoweekday()
        if weekday not in self.days:
            return f"Event scheduled on non-work day ({DAY_NAMES[weekday]})"
        return None


@dataclass
class BlackoutPeriodRule(ProposalRule):
    """Proposal must not intersect a named blackout window."""

    start: datetime
    end: datetime
    reason: str
    severity: ConflictSeverity = "error"
    enabled: bool = True
    rule_id: str = ""

    def __post_init__(self):
        if not self.rule_id:
            slug = re.sub(r"[^a-z0-9]+", "_", self.reason.lower()).strip("_")
            self.rule_id = f"blackout_{slug}"

    def evaluate(self, proposed: Event) -> Optional[str]:
        if overlaps(proposed, (self.start, self.end)) is not None:
            return f"Event scheduled during blackout period: {self.reason}"
        return None


@dataclass
class BufferRule:
    """
    Back-to-back events need a gap of at least `minutes` between them.

    Only non-overlapping neighbours are checked; overlapping ones are already
    time_overlap conflicts. A gap of exactly `minutes` is allowed.
    """

    minutes: int = 30
    severity: ConflictSeverity = "warning"
    enabled: bool = True
    rule_id: str = "buffer_time"
    conflict_type: ClassVar[ConflictType] = "buffer_violation"

    def check(self, proposed: Event, candidates: Sequence[Event]) -> list[RuleViolation]:
        violations = []
        for existing in candidates:
            if existing.end_time <= proposed.start_time:
                gap = (proposed.start_time - existing.end_time).total_seconds() / 60
                if gap < self.minutes:
                    violations.append(RuleViolation(
                        f'Insufficient buffer time ({round(gap)}min) between "{existing.title}" '
                        f"and proposed event. Required: {self.minutes}min",
                        subject=existing,
                    ))
            elif proposed.end_time <= existing.start_time:
                gap = (existing.start_time - proposed.end_time).total_seconds() / 60
                if gap < self.minutes:
                    violations.append(RuleViolation(
                        f"Insufficient buffer time ({round(gap)}min) between proposed event "
                        f'and "{existing.title}". Required: {self.minutes}min',
                        subject=existing,
                    ))
        return violations


@dataclass
class ResourceRule:
    """
    A client or a location cannot be booked twice at the same time.

    Fires for each overlapping event sharing the proposal's client name or
    location (case-insensitive). Events without either never clash.
    """

    severity: ConflictSeverity = "error"
    enabled: bool = True
    rule_id: str = "client_double_booking"
    conflict_type: ClassVar[ConflictType] = "resource_conflict"

    def check(self, proposed: Event, candidates: Sequence[Event]) -> list[RuleViolation]:
        violations = []
        for existing in candidates:
            shared = []
            if _same(proposed.client_name, existing.client_name):
                shared.append(f"Client: {existing.client_name}")
            if _same(proposed.location, existing.location):
                shared.append(f"Location: {existing.location}")
            if not shared or overlaps(proposed, existing) is None:
                continue
            violations.append(RuleViolation(
                f'Resource conflict with "{existing.title}": {", ".join(shared)}',
                subject=existing,
            ))
        return violations


@dataclass
class PriorityClientLimitRule:
    """
    Caps the appointments a priority client gets on one day.

    Counts existing events for the same client on the proposal's start date;
    reaching `max_per_day` is a self-violation of the proposal.
    """

    priority_clients: Sequence[str] = ()
    max_per_day: int = 3
    severity: ConflictSeverity = "warning"
    enabled: bool = True
    rule_id: str = "priority_client_limits"
    conflict_type: ClassVar[ConflictType] = "client_preference"

    def check(self, proposed: Event, candidates: Sequence[Event]) -> list[RuleViolation]:
        client = proposed.client_name
        if not client or client not in self.priority_clients:
            return []

        day = proposed.start_time.date()
        same_day = [
            e for e in candidates
            if e.client_name == client and e.start_time.date() == day
        ]
        if len(same_day) >= self.max_per_day:
            return [RuleViolation(f'Too many appointments for priority client "{client}" on this day')]
        return []


def _same(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and left.strip().lower() == right.strip().lower()


def default_rules(settings: Optional[Settings] = None) -> list[BusinessRule]:
    """
    Build the standard rule set from settings.

    Args:
        settings: Settings to read rule parameters from (cached settings if None)

    Returns:
        [BufferRule, ResourceRule, WorkHoursRule, WorkDaysRule, PriorityClientLimitRule]
    """
    settings = settings or get_settings()
    return [
        BufferRule(minutes=settings.buffer_time_minutes, enabled=settings.buffer_time_minutes > 0),
        ResourceRule(),
        WorkHoursRule(start=settings.work_hours_start, end=settings.work_hours_end),
        WorkDaysRule(days=tuple(settings.work_days)),
        PriorityClientLimitRule(
            priority_clients=tuple(settings.priority_clients),
            max_per_day=settings.max_priority_client_events_per_day,
        ),
    ]
