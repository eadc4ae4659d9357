"""
Unit tests for business rules.

Tests:
- Work hours (start and end inside the working day)
- Work days (ISO weekdays)
- Blackout periods
- Buffer time between back-to-back events
- Shared client or location double booking
- Priority client daily limits
- Default rule set from settings
"""

from datetime import datetime

import pytest

from conflict_engine.config import Settings
from conflict_engine.models.events import Event
from conflict_engine.services.rules import (
    BlackoutPeriodRule,
    BufferRule,
    PriorityClientLimitRule,
    ResourceRule,
    WorkDaysRule,
    WorkHoursRule,
    default_rules,
)


def _event(start: datetime, end: datetime) -> Event:
    return Event(id="p1", title="Proposal", start_time=start, end_time=end)


class TestWorkHoursRule:
    """Test WorkHoursRule."""

    def test_inside_hours(self):
        rule = WorkHoursRule()
        assert rule.evaluate(_event(datetime(2024, 1, 15, 8), datetime(2024, 1, 15, 18))) is None

    def test_starts_before_opening(self):
        """Test an early start is a violation."""
        rule = WorkHoursRule()

        message = rule.evaluate(_event(datetime(2024, 1, 15, 7), datetime(2024, 1, 15, 9)))

        assert message == "Event scheduled outside work hours (08:00-18:00)"

    def test_ends_after_closing(self):
        """Test an event running past closing is a violation."""
        rule = WorkHoursRule()
        assert rule.evaluate(_event(datetime(2024, 1, 15, 17), datetime(2024, 1, 15, 18, 30))) is not None

    def test_runs_past_midnight(self):
        rule = WorkHoursRule()
        assert rule.evaluate(_event(datetime(2024, 1, 15, 17), datetime(2024, 1, 16, 9))) is not None

    def test_custom_hours(self):
        rule = WorkHoursRule(start="06:00", end="20:00")

        assert rule.evaluate(_event(datetime(2024, 1, 15, 6), datetime(2024, 1, 15, 7))) is None
        assert "06:00-20:00" in rule.evaluate(_event(datetime(2024, 1, 15, 5), datetime(2024, 1, 15, 7)))

    def test_defaults(self):
        rule = WorkHoursRule()
        assert rule.rule_id == "work_hours"
        assert rule.severity == "warning"
        assert rule.enabled


class TestWorkDaysRule:
    """Test WorkDaysRule."""

    def test_weekday(self):
        rule = WorkDaysRule()
        # Monday
        assert rule.evaluate(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11))) is None

    @pytest.mark.parametrize(
        "day,name",
        [(20, "Saturday"), (21, "Sunday")],
    )
    def test_weekend(self, day, name):
        """Test weekend proposals name the day."""
        rule = WorkDaysRule()

        message = rule.evaluate(_event(datetime(2024, 1, day, 10), datetime(2024, 1, day, 11)))

        assert message == f"Event scheduled on non-work day ({name})"

    def test_custom_days(self):
        rule = WorkDaysRule(days=(6, 7))
        assert rule.evaluate(_event(datetime(2024, 1, 20, 10), datetime(2024, 1, 20, 11))) is None
        assert rule.evaluate(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11))) is not None


class TestBlackoutPeriodRule:
    """Test BlackoutPeriodRule."""

    def test_rule_id_from_reason(self):
        """Test the rule id is slugged from the reason."""
        rule = BlackoutPeriodRule(
            start=datetime(2024, 12, 24),
            end=datetime(2024, 12, 27),
            reason="Holiday Shutdown",
        )
        assert rule.rule_id == "blackout_holiday_shutdown"
        assert rule.severity == "error"

    def test_overlapping_proposal(self):
        """Test a proposal that starts before but runs into the blackout is caught."""
        rule = BlackoutPeriodRule(
            start=datetime(2024, 1, 15, 12),
            end=datetime(2024, 1, 15, 13),
            reason="Team lunch",
        )

        message = rule.evaluate(_event(datetime(2024, 1, 15, 11, 30), datetime(2024, 1, 15, 12, 30)))

        assert message == "Event scheduled during blackout period: Team lunch"

    def test_adjacent_proposal(self):
        """Test a proposal ending exactly when the blackout starts is allowed."""
        rule = BlackoutPeriodRule(
            start=datetime(2024, 1, 15, 12),
            end=datetime(2024, 1, 15, 13),
            reason="Team lunch",
        )
        assert rule.evaluate(_event(datetime(2024, 1, 15, 11), datetime(2024, 1, 15, 12))) is None


def _neighbour(event_id: str, start: datetime, end: datetime, **kwargs) -> Event:
    return Event(id=event_id, title=f"Event {event_id}", start_time=start, end_time=end, **kwargs)


class TestBufferRule:
    """Test BufferRule."""

    def test_gap_before_too_short(self):
        rule = BufferRule(minutes=30)
        before = _neighbour("e1", datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 9, 50))

        violations = rule.check(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11)), [before])

        assert len(violations) == 1
        assert violations[0].subject is before
        assert violations[0].message == (
            'Insufficient buffer time (10min) between "Event e1" and proposed event. Required: 30min'
        )

    def test_gap_after_too_short(self):
        rule = BufferRule(minutes=30)
        after = _neighbour("e2", datetime(2024, 1, 15, 11), datetime(2024, 1, 15, 12))

        violations = rule.check(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11)), [after])

        assert [v.subject.id for v in violations] == ["e2"]
        assert "(0min) between proposed event and \"Event e2\"" in violations[0].message

    def test_exact_buffer_allowed(self):
        rule = BufferRule(minutes=30)
        before = _neighbour("e1", datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 9, 30))
        after = _neighbour("e2", datetime(2024, 1, 15, 11, 30), datetime(2024, 1, 15, 12))

        proposed = _event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11))

        assert rule.check(proposed, [before, after]) == []

    def test_overlapping_neighbour_ignored(self):
        """Test overlaps are left to time_overlap detection."""
        rule = BufferRule(minutes=30)
        inside = _neighbour("e1", datetime(2024, 1, 15, 10, 30), datetime(2024, 1, 15, 11, 30))

        assert rule.check(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11)), [inside]) == []


class TestResourceRule:
    """Test ResourceRule."""

    def test_same_client_overlapping(self):
        rule = ResourceRule()
        proposed = Event(
            id="p1", title="Proposal", client_name="Acme Corp",
            start_time=datetime(2024, 1, 15, 10), end_time=datetime(2024, 1, 15, 11),
        )
        existing = _neighbour(
            "e1", datetime(2024, 1, 15, 10, 30), datetime(2024, 1, 15, 11, 30), client_name="acme corp"
        )

        violations = rule.check(proposed, [existing])

        assert len(violations) == 1
        assert violations[0].subject is existing
        assert violations[0].message == 'Resource conflict with "Event e1": Client: acme corp'

    def test_same_client_and_location(self):
        rule = ResourceRule()
        proposed = Event(
            id="p1", title="Proposal", client_name="Acme Corp", location="Depot",
            start_time=datetime(2024, 1, 15, 10), end_time=datetime(2024, 1, 15, 11),
        )
        existing = _neighbour(
            "e1", datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11),
            client_name="Acme Corp", location="Depot",
        )

        [violation] = rule.check(proposed, [existing])

        assert violation.message.endswith("Client: Acme Corp, Location: Depot")

    def test_shared_client_without_overlap(self):
        rule = ResourceRule()
        proposed = Event(
            id="p1", title="Proposal", client_name="Acme Corp",
            start_time=datetime(2024, 1, 15, 10), end_time=datetime(2024, 1, 15, 11),
        )
        later = _neighbour("e1", datetime(2024, 1, 15, 13), datetime(2024, 1, 15, 14), client_name="Acme Corp")

        assert rule.check(proposed, [later]) == []

    def test_nothing_shared(self):
        rule = ResourceRule()
        existing = _neighbour("e1", datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11))

        assert rule.check(_event(datetime(2024, 1, 15, 10), datetime(2024, 1, 15, 11)), [existing]) == []


class TestPriorityClientLimitRule:
    """Test PriorityClientLimitRule."""

    def _proposal(self, client_name: str) -> Event:
        return Event(
            id="p1", title="Proposal", client_name=client_name,
            start_time=datetime(2024, 1, 15, 16), end_time=datetime(2024, 1, 15, 17),
        )

    def test_limit_reached(self):
        rule = PriorityClientLimitRule(priority_clients=("Acme Corp",), max_per_day=2)
        booked = [
            _neighbour("e1", datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 10), client_name="Acme Corp"),
            _neighbour("e2", datetime(2024, 1, 15, 12), datetime(2024, 1, 15, 13), client_name="Acme Corp"),
        ]

        [violation] = rule.check(self._proposal("Acme Corp"), booked)

        assert violation.subject is None
        assert violation.message == 'Too many appointments for priority client "Acme Corp" on this day'

    def test_other_days_not_counted(self):
        rule = PriorityClientLimitRule(priority_clients=("Acme Corp",), max_per_day=2)
        booked = [
            _neighbour("e1", datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 10), client_name="Acme Corp"),
            _neighbour("e2", datetime(2024, 1, 16, 12), datetime(2024, 1, 16, 13), client_name="Acme Corp"),
        ]

        assert rule.check(self._proposal("Acme Corp"), booked) == []

    def test_non_priority_client_unlimited(self):
        rule = PriorityClientLimitRule(priority_clients=("Acme Corp",), max_per_day=1)
        booked = [
            _neighbour("e1", datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 10), client_name="Globex"),
        ]

        assert rule.check(self._proposal("Globex"), booked) == []


class TestDefaultRules:
    def test_from_settings(self):
        """Test defaults read rule parameters from settings."""
        settings = Settings(
            _env_file=None,
            work_hours_start="07:00",
            work_days=[1, 2, 3],
            buffer_time_minutes=15,
            priority_clients=["Acme Corp"],
        )

        buffer, resource, hours, days, clients = default_rules(settings)

        assert isinstance(buffer, BufferRule)
        assert buffer.minutes == 15
        assert buffer.enabled
        assert isinstance(resource, ResourceRule)
        assert isinstance(hours, WorkHoursRule)
        assert hours.start == "07:00"
        assert isinstance(days, WorkDaysRule)
        assert tuple(days.days) == (1, 2, 3)
        assert isinstance(clients, PriorityClientLimitRule)
        assert tuple(clients.priority_clients) == ("Acme Corp",)
        assert clients.max_per_day == 3

    def test_zero_buffer_disables_rule(self):
        settings = Settings(_env_file=None, buffer_time_minutes=0)

        buffer = default_rules(settings)[0]

        assert not buffer.enabled
