import logging
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.core.exceptions import ValidationError
from pulse.v1.reminders.models import Reminder

logger = logging.getLogger(__name__)


class ReminderRepository:
    """Reminder persistence with a conditional fire-once transition."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    async def create(self, owner_id: str, title: str, remind_at: datetime) -> Reminder:
        if not title.strip():
            raise ValidationError("Reminder title must not be empty")
        if remind_at.tzinfo is None:
            remind_at = remind_at.replace(tzinfo=UTC)

        reminder = Reminder(
            id=str(uuid4()),
            owner_id=owner_id,
            title=title.strip(),
            remind_at=remind_at,
            triggered=False,
            created_at=self.clock.now(),
        )
        async with self.session_factory() as session:
            session.add(reminder)
            await session.commit()

        logger.info(
            "Reminder created",
            extra={"reminder_id": reminder.id, "remind_at": remind_at.isoformat()},
        )
        return reminder

    async def get(self, reminder_id: str) -> Reminder | None:
        async with self.session_factory() as session:
            return await session.get(Reminder, reminder_id)

    async def pending(self, now: datetime) -> list[Reminder]:
        """Untriggered reminders due at ``now``, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Reminder)
                .where(and_(Reminder.triggered.is_(False), Reminder.remind_at <= now))
                .order_by(Reminder.remind_at, Reminder.id)
            )
            return list(result.scalars().all())

    async def mark_triggered(self, reminder_id: str) -> bool:
        """Flip triggered false -> true. Only one caller ever wins."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Reminder)
                .where(and_(Reminder.id == reminder_id, Reminder.triggered.is_(False)))
                .values(triggered=True)
            )
            await session.commit()
        return (result.rowcount or 0) > 0

    async def release(self, reminder_id: str) -> bool:
        """Undo a claim whose notification could not be delivered."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Reminder)
                .where(and_(Reminder.id == reminder_id, Reminder.triggered.is_(True)))
                .values(triggered=False)
            )
            await session.commit()
        return (result.rowcount or 0) > 0
