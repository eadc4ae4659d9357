"""
Conflict resolution model.

Entities:
- ConflictResolution: Persisted user decision for one conflict id
- ResolutionData: Validated input for saving a resolution
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel as PydanticModel, Field, field_validator
from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from conflict_engine.models.base import BaseModel, get_json_type

ResolutionType = Literal["ACCEPT", "OVERRIDE", "DELETE", "RESCHEDULE"]

RESOLUTION_TYPES: tuple[str, ...] = ("ACCEPT", "OVERRIDE", "DELETE", "RESCHEDULE")


def utcnow() -> datetime:
    """Naive UTC now; resolution timestamps are stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ConflictResolution(BaseModel):
    """
    Persisted user decision that suppresses a conflict from resurfacing.

    At most one row exists per conflict_id (upsert target). Rows whose
    expires_at is in the past are treated as absent and purged lazily.

    Resolution types:
    - ACCEPT: User accepted a clash with an external event
    - OVERRIDE: User overrode a business-rule self-conflict
    - DELETE: The conflicting event was deleted
    - RESCHEDULE: The conflicting event was sent for rescheduling
    """

    __tablename__ = "conflict_resolutions"

    conflict_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="Deterministic conflict identity"
    )

    conflict_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Conflict type, e.g. 'time_overlap', 'buffer_violation', 'business_rule'"
    )

    user_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="User who made the decision"
    )

    resolution_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Resolution: 'ACCEPT', 'OVERRIDE', 'DELETE', 'RESCHEDULE'"
    )

    affected_event_ids: Mapped[list] = mapped_column(
        get_json_type(),
        nullable=False,
        default=list,
        doc="Every event touched by the decision"
    )

    resolution_data: Mapped[dict] = mapped_column(
        get_json_type(),
        nullable=False,
        default=dict,
        doc="Audit payload (action, timestamp, user choice, titles)"
    )

    conflict_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Conflict message snapshot at resolution time"
    )

    resolved_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        doc="When the decision was recorded (naive UTC)"
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        doc="When the decision stops suppressing the conflict (naive UTC)"
    )

    __table_args__ = (
        Index("idx_resolution_resolved_at", "resolved_at"),
        Index("idx_resolution_expires_at", "expires_at"),
    )

    # Fetch server-side timestamps at flush time; rows outlive their session
    __mapper_args__ = {"eager_defaults": True}

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def __repr__(self) -> str:
        return (
            f"<ConflictResolution(conflict_id='{self.conflict_id}', "
            f"type='{self.resolution_type}')>"
        )


class ResolutionData(PydanticModel):
    """Input for ResolutionStore.save_resolution."""

    conflict_id: str = Field(..., min_length=1, max_length=255)
    conflict_type: str = Field(..., min_length=1, max_length=50)
    resolution_type: ResolutionType
    affected_event_ids: list[str] = Field(default_factory=list)
    user_id: Optional[str] = None
    resolution_data: dict[str, Any] = Field(default_factory=dict)
    conflict_message: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("affected_event_ids")
    @classmethod
    def dedupe_event_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)
