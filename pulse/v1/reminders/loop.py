"""
Reminder check loop.
"""

import logging
from datetime import datetime

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.notifications.notifier import Notification, Notifier, Priority
from pulse.v1.reminders.repository import ReminderRepository

logger = logging.getLogger(__name__)


class ReminderCheck:
    """Fires every due reminder exactly once."""

    source = "reminder"

    def __init__(
        self,
        repository: ReminderRepository,
        notifier: Notifier,
        clock: Clock | None = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.clock = clock or SystemClock()

    async def tick(self, now: datetime | None = None) -> list[Notification]:
        now = now or self.clock.now()
        published = []
        for reminder in await self.repository.pending(now):
            if not await self.repository.mark_triggered(reminder.id):
                continue
            try:
                notification = await self.notifier.notify(
                    subject_id=reminder.owner_id,
                    source=self.source,
                    source_event_id=reminder.id,
                    priority=Priority.IMPORTANT,
                    title=f"[Reminder] {reminder.title}",
                    body=f"Reminder: {reminder.title}",
                )
            except Exception:
                # leave it due for the next tick
                await self.repository.release(reminder.id)
                raise
            if notification is not None:
                published.append(notification)

        if published:
            logger.info("Reminders fired", extra={"count": len(published)})
        return published
