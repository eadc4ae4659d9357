"""
Unit tests for conflict result types.

Tests:
- Deterministic conflict ids
- Self-conflict detection
- Derived has_conflicts / can_proceed
"""

from datetime import datetime

from conflict_engine.models.conflicts import (
    ConflictDetail,
    ConflictResult,
    build_conflict_id,
)
from conflict_engine.models.events import Event


def _detail(proposed: Event, conflicting: Event, severity: str, conflict_id: str = "c") -> ConflictDetail:
    return ConflictDetail(
        id=conflict_id,
        type="time_overlap",
        severity=severity,
        conflicting_event=conflicting,
        proposed_event=proposed,
        message="overlap",
    )


class TestBuildConflictId:
    """Test build_conflict_id()."""

    def test_persisted_proposal(self):
        assert build_conflict_id("p1", "e7", "time_overlap") == "p1:e7:time_overlap"

    def test_unsaved_proposal(self):
        """Test proposals without an id share the transient prefix."""
        assert build_conflict_id(None, "work_hours", "business_rule") == "proposed:work_hours:business_rule"

    def test_deterministic(self):
        """Test the same triple always yields the same id."""
        assert build_conflict_id("p1", "e7", "time_overlap") == build_conflict_id("p1", "e7", "time_overlap")


class TestConflictDetail:
    """Test ConflictDetail properties."""

    def test_self_conflict_by_identity(self):
        proposed = Event(id=None, title="New", start_time=datetime(2024, 1, 15, 7))
        detail = _detail(proposed, proposed, "warning")

        assert detail.is_self_conflict

    def test_self_conflict_by_id(self):
        """Test a copy of the proposal with the same id still counts as itself."""
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 7))
        copy = proposed.with_times(proposed.start_time, proposed.end_time)

        assert _detail(proposed, copy, "warning").is_self_conflict

    def test_external_conflict(self):
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 10))
        other = Event(id="e1", title="Old", start_time=datetime(2024, 1, 15, 10))

        detail = _detail(proposed, other, "critical")

        assert not detail.is_self_conflict
        assert detail.severity_rank == 3


class TestConflictResult:
    """Test derived fields of ConflictResult."""

    def test_empty_result(self):
        result = ConflictResult()

        assert not result.has_conflicts
        assert result.can_proceed

    def test_can_proceed_with_warnings_and_errors(self):
        """Test non-critical conflicts never block."""
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 10))
        other = Event(id="e1", title="Old", start_time=datetime(2024, 1, 15, 10))
        result = ConflictResult(conflicts=[
            _detail(proposed, other, "warning", "a"),
            _detail(proposed, other, "error", "b"),
        ])

        assert result.has_conflicts
        assert result.can_proceed
        assert result.critical_conflicts == []

    def test_critical_blocks(self):
        """Test one critical conflict blocks the proposal."""
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 10))
        other = Event(id="e1", title="Old", start_time=datetime(2024, 1, 15, 10))
        result = ConflictResult(conflicts=[
            _detail(proposed, other, "warning", "a"),
            _detail(proposed, other, "critical", "b"),
        ])

        assert not result.can_proceed
        assert [c.id for c in result.critical_conflicts] == ["b"]

    def test_derived_fields_follow_mutation(self):
        """Test has_conflicts/can_proceed are recomputed on every access."""
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 10))
        other = Event(id="e1", title="Old", start_time=datetime(2024, 1, 15, 10))
        result = ConflictResult(conflicts=[_detail(proposed, other, "critical", "a")])

        result.conflicts.clear()

        assert not result.has_conflicts
        assert result.can_proceed

    def test_get(self):
        proposed = Event(id="p1", title="New", start_time=datetime(2024, 1, 15, 10))
        other = Event(id="e1", title="Old", start_time=datetime(2024, 1, 15, 10))
        detail = _detail(proposed, other, "warning", "a")
        result = ConflictResult(conflicts=[detail])

        assert result.get("a") is detail
        assert result.get("missing") is None
