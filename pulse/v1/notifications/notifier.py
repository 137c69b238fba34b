"""
Notifier and outbound notification queue.

Loops hand qualifying events to the ``Notifier``; it consults the dedup ledger
and, when the event is new, appends a ``Notification`` to the outbound queue.
A delivery channel (the HTTP drain endpoint, a pager, a desktop shell)
consumes the queue at its own pace.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.notifications.ledger import DedupLedger

logger = logging.getLogger(__name__)


class Priority(str, Enum):
    URGENT = "urgent"
    IMPORTANT = "important"
    INFO = "info"


class NotificationAction(BaseModel):
    """A follow-up the human can take from the notification."""

    label: str
    type: str = "open_url"
    url: str | None = None


class Notification(BaseModel):
    """Outbound notification as seen by the delivery channel."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    subject_id: str
    source: str
    source_event_id: str
    priority: Priority = Priority.INFO
    title: str
    body: str = ""
    actions: list[NotificationAction] = Field(default_factory=list)
    timestamp: datetime


class NotificationQueue:
    """Unbounded FIFO of published notifications."""

    def __init__(self):
        self._queue: asyncio.Queue[Notification] = asyncio.Queue()

    def put(self, notification: Notification) -> None:
        # Unbounded, so this never blocks or raises QueueFull
        self._queue.put_nowait(notification)

    async def get(self) -> Notification:
        """Wait for the next notification."""
        return await self._queue.get()

    def drain(self, limit: int | None = None) -> list[Notification]:
        """Remove and return up to ``limit`` queued notifications, oldest first."""
        drained: list[Notification] = []
        while not self._queue.empty() and (limit is None or len(drained) < limit):
            drained.append(self._queue.get_nowait())
        return drained

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


class Notifier:
    """Turns events into deduplicated notifications."""

    def __init__(
        self,
        ledger: DedupLedger,
        queue: NotificationQueue,
        clock: Clock | None = None,
    ):
        self.ledger = ledger
        self.queue = queue
        self.clock = clock or SystemClock()

    async def notify(
        self,
        subject_id: str,
        source: str,
        source_event_id: str,
        title: str,
        body: str = "",
        priority: Priority | str = Priority.INFO,
        actions: list[NotificationAction] | None = None,
    ) -> Notification | None:
        """
        Publish a notification unless this event was already notified.

        Returns:
            The published notification, or None when the ledger suppressed it.
        """
        if not await self.ledger.should_notify(subject_id, source, source_event_id):
            return None

        notification = Notification(
            subject_id=subject_id,
            source=source,
            source_event_id=source_event_id,
            priority=Priority(priority),
            title=title,
            body=body,
            actions=actions or [],
            timestamp=self.clock.now(),
        )
        self.publish(notification)
        return notification

    def publish(self, notification: Notification) -> None:
        """Append to the outbound queue without blocking the caller."""
        self.queue.put(notification)
        logger.info(
            "Notification published",
            extra={
                "subject_id": notification.subject_id,
                "source": notification.source,
                "priority": notification.priority.value,
                "title": notification.title,
            },
        )
