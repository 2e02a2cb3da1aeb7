"""
Base models and mixins for SQLAlchemy ORM.

Provides the declarative base, timestamp mixin, timestamp helpers and
common utilities for all database models.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base


# SQLAlchemy declarative base for all ORM models
Base = declarative_base()


def to_iso(value: datetime) -> str:
    """
    Format a datetime as a fixed-width UTC ISO string.

    Fixed width (always with microseconds) keeps lexical comparison of
    stored timestamps equal to chronological comparison.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now_iso() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO format timestamp string (e.g., "2026-01-15T10:30:45.123456+00:00")
    """
    return to_iso(datetime.now(timezone.utc))


def utc_iso_after(**delta: float) -> str:
    """ISO timestamp ``timedelta(**delta)`` from now (negative for the past)."""
    return to_iso(datetime.now(timezone.utc) + timedelta(**delta))


def parse_iso(value: str) -> datetime:
    """Parse a stored ISO timestamp back into an aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamp columns.

    Uses TEXT type for SQLite compatibility (ISO format strings).

    Attributes:
        created_at: Timestamp when record was created (immutable)
        updated_at: Timestamp when record was last updated (auto-updated)
    """

    created_at = Column(
        String,
        nullable=False,
        default=utc_now_iso,
        doc="UTC timestamp when record was created"
    )

    updated_at = Column(
        String,
        nullable=False,
        default=utc_now_iso,
        onupdate=utc_now_iso,
        doc="UTC timestamp when record was last updated"
    )


class ModelMixin:
    """
    Mixin providing common model utilities.
    """

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Returns:
            Dictionary with all column values (relationships excluded)
        """
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        attrs = ", ".join(
            f"{key}={repr(value)}"
            for key, value in self.to_dict().items()
            if key in ["id", "name", "email", "username", "action"]
        )
        return f"{self.__class__.__name__}({attrs})"
