"""
Unit tests for the ConflictResolution model and ResolutionData input.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conflict_engine.models.resolutions import (
    ConflictResolution,
    ResolutionData,
    to_naive_utc,
    utcnow,
)


class TestConflictResolution:
    """Test ConflictResolution expiry."""

    def test_no_expiry_never_expires(self):
        resolution = ConflictResolution(conflict_id="p:e:time_overlap", expires_at=None)
        assert not resolution.is_expired()

    def test_past_expiry(self):
        resolution = ConflictResolution(
            conflict_id="p:e:time_overlap",
            expires_at=utcnow() - timedelta(minutes=1),
        )
        assert resolution.is_expired()

    def test_future_expiry(self):
        resolution = ConflictResolution(
            conflict_id="p:e:time_overlap",
            expires_at=utcnow() + timedelta(hours=1),
        )
        assert not resolution.is_expired()

    def test_repr(self):
        resolution = ConflictResolution(conflict_id="p:e:time_overlap", resolution_type="ACCEPT")
        assert "p:e:time_overlap" in repr(resolution)
        assert "ACCEPT" in repr(resolution)


class TestResolutionData:
    """Test ResolutionData validation."""

    def test_valid(self):
        data = ResolutionData(
            conflict_id="p1:e1:time_overlap",
            conflict_type="time_overlap",
            resolution_type="ACCEPT",
            affected_event_ids=["e1", "p1"],
        )
        assert data.resolution_data == {}
        assert data.user_id is None

    def test_unknown_resolution_type(self):
        with pytest.raises(ValidationError):
            ResolutionData(
                conflict_id="p1:e1:time_overlap",
                conflict_type="time_overlap",
                resolution_type="IGNORE",
            )

    def test_empty_conflict_id(self):
        with pytest.raises(ValidationError):
            ResolutionData(conflict_id="", conflict_type="time_overlap", resolution_type="ACCEPT")

    def test_affected_ids_deduplicated(self):
        """Test repeated event ids collapse, keeping first-seen order."""
        data = ResolutionData(
            conflict_id="proposed:work_hours:business_rule",
            conflict_type="business_rule",
            resolution_type="OVERRIDE",
            affected_event_ids=["proposed", "proposed"],
        )
        assert data.affected_event_ids == ["proposed"]

    def test_aware_expiry_normalized(self):
        """Test timezone-aware expiry is stored as naive UTC."""
        data = ResolutionData(
            conflict_id="p1:e1:time_overlap",
            conflict_type="time_overlap",
            resolution_type="ACCEPT",
            expires_at=datetime(2024, 1, 15, 12, tzinfo=timezone(timedelta(hours=2))),
        )
        assert data.expires_at == datetime(2024, 1, 15, 10)


class TestToNaiveUtc:
    def test_none(self):
        assert to_naive_utc(None) is None

    def test_naive_unchanged(self):
        value = datetime(2024, 1, 15, 10)
        assert to_naive_utc(value) is value
