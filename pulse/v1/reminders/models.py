"""
Reminder model.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulse.infra.database import Base, UTCDateTime, utcnow


class Reminder(Base):
    """A one-shot reminder, fired at most once."""

    __tablename__ = "reminders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    remind_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_reminders_triggered_remind_at", "triggered", "remind_at"),
    )

    def __repr__(self) -> str:
        return f"<Reminder {self.id} remind_at={self.remind_at} triggered={self.triggered}>"
