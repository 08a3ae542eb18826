"""
Declarative Base

Shared base class, JSON column type and timestamp mixin for the ingestion
tables (jobs, staging rows, properties, violations, jurisdictions).
"""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


# Job warnings and property violation types; JSONB on PostgreSQL, JSON on SQLite
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Metadata root for every ingestion table; Alembic autogenerates from it."""

    id: Any


class TimestampMixin:
    """
    Database-side ``created_at`` / ``updated_at`` columns.

    The job monitor compares ``created_at`` against its orphan threshold, so
    these are set by the server clock rather than the worker.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Row insert time"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Last write time"
    )


def import_all_models():
    """Register the ingestion models on ``Base.metadata`` before create_all or autogenerate."""
    from src.leadintake.db import models  # noqa: F401
