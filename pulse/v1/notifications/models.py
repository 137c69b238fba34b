"""
Notification dedup ledger model.
"""

from datetime import datetime

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pulse.infra.database import Base, UTCDateTime, utcnow


class DedupRecord(Base):
    """
    Proof that a notification for one source event was emitted.

    The composite primary key is the emission gate: a second insert for the
    same key fails and the caller treats it as "already notified".
    """

    __tablename__ = "notification_log"

    subject_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    source: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_event_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    logged_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    __table_args__ = (Index("ix_notification_log_logged_at", "logged_at"),)

    def __repr__(self) -> str:
        return f"<DedupRecord {self.subject_id}/{self.source}/{self.source_event_id}>"
