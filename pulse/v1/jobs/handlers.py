"""
Built-in job handlers.

Each handler implements the JobHandler protocol and is registered in a
JobRegistry by ``build_job_registry``.
"""

import logging
from typing import Any, Protocol

from pulse.v1.core.registries import JobContext
from pulse.v1.notifications.notifier import Notifier, Priority

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    """Outbound mail collaborator used by ``send_email`` jobs."""

    async def send(
        self,
        owner_id: str,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
    ) -> None: ...


class PingHandler:
    """No-op handler, useful for health checks and smoke tests."""

    async def handle(
        self, payload: dict[str, Any], owner_id: str, context: JobContext
    ) -> dict[str, Any] | None:
        logger.debug("Ping job handled", extra={"job_id": context.job_id})
        return {"status": "completed", "pong": True}


class ReminderHandler:
    """
    Fires a scheduled reminder as a notification.

    Payload expected:
    {
        "title": "Stand-up",
        "body": "optional, defaults to the title"
    }
    """

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    async def handle(
        self, payload: dict[str, Any], owner_id: str, context: JobContext
    ) -> dict[str, Any] | None:
        title = payload.get("title") or "Scheduled Reminder"
        notification = await self.notifier.notify(
            subject_id=owner_id,
            source="job",
            source_event_id=context.epoch,
            priority=Priority.IMPORTANT,
            title=f"[Reminder] {title}",
            body=payload.get("body") or payload.get("title") or "",
        )
        return {"status": "completed", "notified": notification is not None}


class SendEmailHandler:
    """
    Sends a scheduled email through the configured mailer.

    Payload expected:
    {
        "to": "someone@example.com",
        "subject": "Weekly report",
        "body": "...",
        "cc": "optional@example.com"
    }
    """

    def __init__(self, mailer: Mailer, notifier: Notifier):
        self.mailer = mailer
        self.notifier = notifier

    async def handle(
        self, payload: dict[str, Any], owner_id: str, context: JobContext
    ) -> dict[str, Any] | None:
        missing = [field for field in ("to", "subject") if not payload.get(field)]
        if missing:
            raise ValueError(f"Missing required payload fields: {', '.join(missing)}")

        to = payload["to"]
        subject = payload["subject"]
        await self.mailer.send(
            owner_id=owner_id,
            to=to,
            subject=subject,
            body=payload.get("body", ""),
            cc=payload.get("cc"),
        )

        await self.notifier.notify(
            subject_id=owner_id,
            source="job",
            source_event_id=context.epoch,
            priority=Priority.INFO,
            title="[OK] Scheduled email sent",
            body=f"To: {to}\nSubject: {subject}",
        )

        logger.info(
            "Scheduled email sent",
            extra={"job_id": context.job_id, "to": to, "subject": subject},
        )
        return {"status": "completed", "to": to}
