"""
Scheduled job model.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulse.infra.database import Base, UTCDateTime, utcnow


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class Recurrence(str, Enum):
    """Supported recurrence rules."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class Job(Base):
    """
    A unit of deferred or recurring work.

    Status moves pending -> running -> done|failed once per cycle. A recurring
    job goes back to pending with an advanced run_at instead of finishing.
    """

    __tablename__ = "scheduled_jobs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    owner_id: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Subject the job acts on behalf of"
    )
    type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Handler selector"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Handler parameters"
    )
    run_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, comment="Earliest time to run, UTC"
    )
    recurrence: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="hourly|daily|weekly or NULL"
    )
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|running|done|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Cycles dispatched"
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last handler error message"
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'done', 'failed')",
            name="scheduled_jobs_status_check",
        ),
        CheckConstraint(
            "recurrence IS NULL OR recurrence IN ('hourly', 'daily', 'weekly')",
            name="scheduled_jobs_recurrence_check",
        ),
        Index("ix_scheduled_jobs_status_run_at", "status", "run_at"),
        Index("ix_scheduled_jobs_owner_id", "owner_id"),
    )

    def is_recurring(self) -> bool:
        return self.recurrence is not None

    def __repr__(self) -> str:
        return f"<Job {self.id} type={self.type} status={self.status}>"
