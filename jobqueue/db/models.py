"""
SQLAlchemy database models.
Defines the key/record table backing SqlJobStore.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueRecord(Base):
    """
    One persisted queue record.

    Active jobs live under ``queue_<job id>`` and dead-lettered jobs under
    ``failed_<job id>_<millis>``. The data column holds the serialized Job.
    """

    __tablename__ = "queue_records"

    key: Mapped[str] = mapped_column(
        String(512),
        primary_key=True,
    )

    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=dict,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<QueueRecord(key={self.key})>"
