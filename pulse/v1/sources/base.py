"""
External event sources and the loop that polls them.

A source turns one subject's view of an external system into a list of
``SourceEvent``s. Sources raise on failure rather than returning partial
data; ``SourceCheck`` isolates the failure to that subject for this tick.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pulse.v1.core.exceptions import TransientExternalError
from pulse.v1.notifications.notifier import (
    Notification,
    NotificationAction,
    Notifier,
    Priority,
)

logger = logging.getLogger(__name__)


@dataclass
class SourceEvent:
    """A qualifying event reported by a source."""

    source_event_id: str
    title: str
    body: str = ""
    priority: Priority = Priority.INFO
    actions: list[NotificationAction] = field(default_factory=list)


class EventSource(Protocol):
    name: str

    async def poll(self, subject_id: str) -> list[SourceEvent]:
        """
        Return the events currently visible for ``subject_id``.

        Raises:
            TransientExternalError: the external system could not be read
        """
        ...


class SourceCheck:
    """Periodic loop body polling one source for every subject."""

    def __init__(
        self,
        source: EventSource,
        subjects: Iterable[str] | Callable[[], Iterable[str]],
        notifier: Notifier,
    ):
        self.source = source
        self._subjects = subjects
        self.notifier = notifier

    @property
    def subjects(self) -> list[str]:
        if callable(self._subjects):
            return list(self._subjects())
        return list(self._subjects)

    async def tick(self, now: datetime | None = None) -> list[Notification]:
        published = []
        for subject_id in self.subjects:
            try:
                events = await self.source.poll(subject_id)
            except TransientExternalError as e:
                logger.warning(
                    "Event source unavailable",
                    extra={
                        "source": self.source.name,
                        "subject_id": subject_id,
                        "error": e.message,
                    },
                )
                continue
            except Exception:
                logger.exception(
                    "Event source poll failed",
                    extra={"source": self.source.name, "subject_id": subject_id},
                )
                continue

            for event in events:
                notification = await self.notifier.notify(
                    subject_id=subject_id,
                    source=self.source.name,
                    source_event_id=event.source_event_id,
                    priority=event.priority,
                    title=event.title,
                    body=event.body,
                    actions=event.actions,
                )
                if notification is not None:
                    published.append(notification)

        if published:
            logger.info(
                "Source events notified",
                extra={"source": self.source.name, "count": len(published)},
            )
        return published
