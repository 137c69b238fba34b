"""
Mailbox event source: unread recent messages become notifications.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from pulse.v1.notifications.notifier import NotificationAction, Priority
from pulse.v1.sources.base import SourceEvent

URGENT_KEYWORDS = (
    "urgent",
    "asap",
    "emergency",
    "critical",
    "deadline",
    "immediate",
    "action required",
)
IMPORTANT_KEYWORDS = ("invitation", "re:", "meeting")


@dataclass
class MailMessage:
    id: str
    subject: str = "(No Subject)"
    sender: str = "Unknown"
    snippet: str = ""
    url: str | None = None


class MailboxClient(Protocol):
    async def list_unread(self, subject_id: str) -> list[MailMessage]:
        """Recent unread messages of the subject's mailbox."""
        ...


def classify_priority(message: MailMessage) -> Priority:
    """Keyword heuristic on the subject line."""
    subject = (message.subject or "").lower()
    if any(keyword in subject for keyword in URGENT_KEYWORDS):
        return Priority.URGENT
    if any(keyword in subject for keyword in IMPORTANT_KEYWORDS):
        return Priority.IMPORTANT
    return Priority.INFO


class MailboxSource:
    name = "email"

    def __init__(self, client: MailboxClient, self_sent_markers: Iterable[str] = ()):
        self.client = client
        self.self_sent_markers = [m.lower() for m in self_sent_markers if m]

    def is_self_sent(self, message: MailMessage) -> bool:
        """Mail this engine sent from the subject's own account."""
        subject = (message.subject or "").lower()
        return any(marker in subject for marker in self.self_sent_markers)

    async def poll(self, subject_id: str) -> list[SourceEvent]:
        events = []
        for message in await self.client.list_unread(subject_id):
            if self.is_self_sent(message):
                continue

            priority = classify_priority(message)
            prefix = "[URGENT]" if priority == Priority.URGENT else "[Email]"
            actions = (
                [NotificationAction(label="Open mail", url=message.url)]
                if message.url
                else []
            )
            events.append(
                SourceEvent(
                    source_event_id=message.id,
                    title=f"{prefix} {message.subject}",
                    body=f"From: {message.sender}\n{message.snippet}",
                    priority=priority,
                    actions=actions,
                )
            )
        return events
