"""
Durable idempotency log gating notification emission.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.notifications.models import DedupRecord

logger = logging.getLogger(__name__)


class DedupLedger:
    """At-most-once gate keyed by (subject, source, source event id)."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    async def should_notify(
        self, subject_id: str, source: str, source_event_id: str
    ) -> bool:
        """
        Record the event and report whether this caller is the first to do so.

        The insert is the check: a primary key collision means the event was
        already notified, by this process or a previous one.
        """
        record = DedupRecord(
            subject_id=subject_id,
            source=source,
            source_event_id=source_event_id,
            logged_at=self.clock.now(),
        )
        async with self.session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.debug(
                    "Notification suppressed by dedup ledger",
                    extra={
                        "subject_id": subject_id,
                        "source": source,
                        "source_event_id": source_event_id,
                    },
                )
                return False
        return True

    async def has(self, subject_id: str, source: str, source_event_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DedupRecord.logged_at).where(
                    and_(
                        DedupRecord.subject_id == subject_id,
                        DedupRecord.source == source,
                        DedupRecord.source_event_id == source_event_id,
                    )
                )
            )
            return result.first() is not None

    async def purge(self, older_than: datetime) -> int:
        """Delete records logged before ``older_than``. Returns the count."""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(DedupRecord).where(DedupRecord.logged_at < older_than)
            )
            await session.commit()

        purged = result.rowcount or 0
        if purged:
            logger.info(
                "Purged dedup records",
                extra={"purged_count": purged, "older_than": older_than.isoformat()},
            )
        return purged
