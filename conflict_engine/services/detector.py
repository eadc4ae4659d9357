"""
Conflict detection service.

Compares a proposed event against existing events (time overlaps) and
business rules (buffer time, shared clients or locations, work hours and
days, priority client limits), producing a ConflictResult whose conflicts
keep candidate input order followed by rule order. Ranking for display is
done separately by InsightRanker.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Sequence

from conflict_engine.config import Settings, get_settings
from conflict_engine.models.conflicts import (
    AlternativeSlot,
    ConflictDetail,
    ConflictResult,
    ConflictSeverity,
    ResolutionSuggestion,
    TimeOverlap,
    build_conflict_id,
)
from conflict_engine.models.events import Event
from conflict_engine.services.intervals import overlap_ratio, overlaps, validate_interval
from conflict_engine.services.rules import BusinessRule, default_rules

if TYPE_CHECKING:
    from conflict_engine.services.resolution_store import ResolutionStore

logger = logging.getLogger(__name__)

# Alternative slot search window around the original start
ALTERNATIVE_WINDOW_HOURS = 2.0
ALTERNATIVE_STEP_HOURS = 0.5
MAX_ALTERNATIVES = 3


@dataclass
class SeverityPolicy:
    """
    Maps an overlap to a severity.

    - critical: either event's priority is in critical_priorities
    - error: overlap covers at least error_ratio of the shorter event
    - warning: anything else
    """

    error_ratio: float = 0.5
    critical_priorities: frozenset[str] = field(default_factory=lambda: frozenset({"urgent"}))

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SeverityPolicy":
        settings = settings or get_settings()
        return cls(
            error_ratio=settings.overlap_error_ratio,
            critical_priorities=frozenset(settings.critical_priorities),
        )

    def classify(self, proposed: Event, existing: Event, overlap: TimeOverlap) -> ConflictSeverity:
        if (
            proposed.priority in self.critical_priorities
            or existing.priority in self.critical_priorities
        ):
            return "critical"
        if overlap_ratio(overlap, proposed, existing) >= self.error_ratio:
            return "error"
        return "warning"


class ConflictDetector:
    """
    Detects scheduling conflicts for a proposed event.

    Detection itself is pure. detect_with_resolutions() adds the single
    Resolution Store read that suppresses previously resolved conflicts.
    """

    def __init__(
        self,
        policy: Optional[SeverityPolicy] = None,
        rules: Optional[Sequence[BusinessRule]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the detector.

        Args:
            policy: Severity policy (built from settings if None)
            rules: Default business rules (default_rules(settings) if None)
            settings: Settings override
        """
        self._settings = settings or get_settings()
        self.policy = policy or SeverityPolicy.from_settings(self._settings)
        self.rules = list(rules) if rules is not None else default_rules(self._settings)

    def detect(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> ConflictResult:
        """
        Detect conflicts for a proposed event.

        Args:
            proposed: Event being checked (need not be persisted)
            candidates: Existing events to compare against
            rules: Business rules to apply (detector defaults if None)

        Returns:
            ConflictResult with conflicts in candidate order, then rule order

        Raises:
            DetectionError: If the proposal's interval is malformed
        """
        validate_interval(proposed, label=f'Proposed event "{proposed.title}"')
        active_rules = self.rules if rules is None else rules

        conflicts = self._find_conflicts(proposed, candidates, active_rules)
        suggestions = self._build_suggestions(proposed, conflicts, candidates, active_rules)

        if conflicts:
            logger.debug(
                f"Detected {len(conflicts)} conflicts for proposal "
                f"{proposed.id or '<unsaved>'} against {len(candidates)} candidates"
            )
        return ConflictResult(conflicts=conflicts, suggestions=suggestions)

    async def detect_with_resolutions(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        store: "ResolutionStore",
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> ConflictResult:
        """
        Detect conflicts, dropping those the user already accepted or overrode.

        The store is read once for the whole result. A store outage yields
        the unfiltered result.
        """
        initial = self.detect(proposed, candidates, rules)
        if not initial.has_conflicts:
            return initial

        unresolved = await store.filter_resolved(initial.conflicts)
        if len(unresolved) != len(initial.conflicts):
            logger.info(
                f"Suppressed {len(initial.conflicts) - len(unresolved)} of "
                f"{len(initial.conflicts)} conflicts with recorded resolutions"
            )

        active_rules = self.rules if rules is None else rules
        return ConflictResult(
            conflicts=unresolved,
            suggestions=self._build_suggestions(proposed, unresolved, candidates, active_rules),
        )

    def check_drag_conflicts(
        self,
        dragged: Event,
        new_start: datetime,
        new_end: datetime,
        candidates: Sequence[Event],
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> ConflictResult:
        """
        Re-check an existing event at a new time before committing the move.

        The dragged event's original occurrence is excluded from candidates.
        """
        moved = dragged.with_times(new_start, new_end)
        others = [e for e in candidates if e.id is None or e.id != dragged.id]
        return self.detect(moved, others, rules)

    def detect_batch(
        self,
        events: Sequence[Event],
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> dict[str, ConflictResult]:
        """
        Check every event against all the others.

        Returns:
            Dict mapping event id to its ConflictResult
        """
        results: dict[str, ConflictResult] = {}
        for index, event in enumerate(events):
            others = [e for i, e in enumerate(events) if i != index]
            results[event.id or f"index:{index}"] = self.detect(event, others, rules)
        return results

    def suggest_alternative_slots(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        rules: Optional[Sequence[BusinessRule]] = None,
    ) -> list[AlternativeSlot]:
        """
        Conflict-free slots near the original start, closest first.

        Tries offsets within +/-2 hours in 30-minute steps and keeps the
        three with the highest confidence (1 - |offset_hours| / 4).
        """
        active_rules = self.rules if rules is None else rules
        return self._alternative_slots(proposed, candidates, active_rules)

    def _find_conflicts(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        rules: Sequence[BusinessRule],
    ) -> list[ConflictDetail]:
        conflicts: list[ConflictDetail] = []
        others: list[Event] = []

        for candidate in candidates:
            if candidate is proposed or (
                proposed.id is not None and candidate.id == proposed.id
            ):
                continue
            if candidate.start_time >= candidate.end_time:
                logger.warning(
                    f"Skipping candidate {candidate.id} with malformed interval "
                    f"{candidate.start_time} - {candidate.end_time}"
                )
                continue
            others.append(candidate)

            overlap = overlaps(proposed, candidate)
            if overlap is None:
                continue

            conflicts.append(
                ConflictDetail(
                    id=build_conflict_id(proposed.id, str(candidate.id), "time_overlap"),
                    type="time_overlap",
                    severity=self.policy.classify(proposed, candidate, overlap),
                    conflicting_event=candidate,
                    proposed_event=proposed,
                    message=(
                        f'Event overlaps with "{candidate.title}" by '
                        f"{overlap.duration_minutes} minutes"
                    ),
                    time_overlap=overlap,
                )
            )

        for rule in rules:
            if not rule.enabled:
                continue
            for violation in rule.check(proposed, others):
                subject = violation.subject
                if subject is None:
                    conflict_id = build_conflict_id(proposed.id, rule.rule_id, rule.conflict_type)
                    conflicting_event = proposed
                else:
                    conflict_id = build_conflict_id(proposed.id, str(subject.id), rule.conflict_type)
                    conflicting_event = subject
                conflicts.append(
                    ConflictDetail(
                        id=conflict_id,
                        type=rule.conflict_type,
                        severity=rule.severity,
                        conflicting_event=conflicting_event,
                        proposed_event=proposed,
                        message=violation.message,
                        time_overlap=None if subject is None else overlaps(proposed, subject),
                        rule_id=rule.rule_id,
                    )
                )

        return conflicts

    def _has_conflicts(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        rules: Sequence[BusinessRule],
    ) -> bool:
        return bool(self._find_conflicts(proposed, candidates, rules))

    def _alternative_slots(
        self,
        proposed: Event,
        candidates: Sequence[Event],
        rules: Sequence[BusinessRule],
    ) -> list[AlternativeSlot]:
        duration = proposed.end_time - proposed.start_time
        alternatives: list[AlternativeSlot] = []

        steps = int(ALTERNATIVE_WINDOW_HOURS / ALTERNATIVE_STEP_HOURS)
        for step in range(-steps, steps + 1):
            if step == 0:
                continue
            offset_hours = step * ALTERNATIVE_STEP_HOURS
            start = proposed.start_time + timedelta(hours=offset_hours)
            shifted = proposed.with_times(start, start + duration)
            if self._has_conflicts(shifted, candidates, rules):
                continue
            alternatives.append(
                AlternativeSlot(
                    start=shifted.start_time,
                    end=shifted.end_time,
                    confidence=1 - abs(offset_hours) / (2 * ALTERNATIVE_WINDOW_HOURS),
                )
            )

        # Stable sort keeps earlier slots first among equal confidence
        alternatives.sort(key=lambda slot: slot.confidence, reverse=True)
        return alternatives[:MAX_ALTERNATIVES]

    def _build_suggestions(
        self,
        proposed: Event,
        conflicts: list[ConflictDetail],
        candidates: Sequence[Event],
        rules: Sequence[BusinessRule],
    ) -> list[ResolutionSuggestion]:
        if not conflicts:
            return []

        suggestions = [
            ResolutionSuggestion(
                strategy="cancel",
                description="Cancel this event and do not schedule",
                estimated_impact="Event will not be created",
                requires_client_notification=False,
            )
        ]

        if not any(c.severity == "critical" for c in conflicts):
            suggestions.append(
                ResolutionSuggestion(
                    strategy="allow",
                    description="Allow scheduling despite conflicts",
                    estimated_impact="May cause scheduling issues that need manual resolution",
                    requires_client_notification=True,
                )
            )

        slots = self._alternative_slots(proposed, candidates, rules)
        if slots:
            suggestions.append(
                ResolutionSuggestion(
                    strategy="reschedule",
                    description="Reschedule to a different time",
                    estimated_impact="Choose from available alternative time slots",
                    requires_client_notification=True,
                    alternative_slots=slots,
                )
            )

        return suggestions
