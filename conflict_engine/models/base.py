"""
Base model definitions for SQLAlchemy.

Provides:
- BaseModel declarative base with common fields
- JSON/JSONB column factory function
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, JSON, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from conflict_engine.config import get_settings


def get_json_type():
    """
    Get database-appropriate JSON column type.

    Returns:
        JSONB for PostgreSQL (with indexing support)
        JSON for SQLite (basic JSON support)
    """
    if get_settings().uses_postgresql:
        return JSONB
    return JSON


class Base(DeclarativeBase):
    """Declarative base for all models."""


class BaseModel(Base):
    """
    Base model with common fields for all entities.

    Provides:
    - id: UUID primary key (native UUID on PostgreSQL, CHAR(32) on SQLite)
    - created_at: Timestamp of record creation (UTC)
    - updated_at: Timestamp of last update (UTC, auto-updates)
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="Unique identifier (UUID)"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Timestamp of record creation (UTC)"
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
        doc="Timestamp of last update (UTC)"
    )

    def __repr__(self) -> str:
        """String representation showing class name and ID."""
        return f"<{self.__class__.__name__}(id={self.id})>"
