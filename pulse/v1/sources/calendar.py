"""
Calendar event source: alerts for meetings about to start.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.notifications.notifier import NotificationAction, Priority
from pulse.v1.sources.base import SourceEvent

# Extra lookahead so an event just past the window edge still rounds into it
_LOOKAHEAD_SLACK = timedelta(minutes=3)


@dataclass
class Attendee:
    email: str
    display_name: str | None = None
    is_self: bool = False


@dataclass
class CalendarEvent:
    id: str
    start: datetime
    summary: str | None = None
    location: str | None = None
    conference_url: str | None = None
    attendees: list[Attendee] = field(default_factory=list)
    description: str | None = None
    html_link: str | None = None


class CalendarClient(Protocol):
    async def list_upcoming(
        self, subject_id: str, time_min: datetime, time_max: datetime
    ) -> list[CalendarEvent]:
        """Events of the subject's primary calendar starting in the range."""
        ...


def build_meeting_brief(event: CalendarEvent, minutes_until: int) -> str:
    parts = [f"Starts in {minutes_until} minutes"]

    if event.location:
        parts.append(f"Location: {event.location}")
    if event.conference_url:
        parts.append(f"Join: {event.conference_url}")

    names = [
        a.display_name or a.email for a in event.attendees if not a.is_self
    ][:3]
    if names:
        parts.append(f"With: {', '.join(names)}")

    if event.description:
        parts.append(f"Notes: {event.description[:150]}")

    return "\n".join(parts)


class CalendarSource:
    name = "calendar"

    def __init__(
        self,
        client: CalendarClient,
        clock: Clock | None = None,
        window_min: int = 17,
    ):
        self.client = client
        self.clock = clock or SystemClock()
        self.window_min = window_min

    async def poll(self, subject_id: str) -> list[SourceEvent]:
        now = self.clock.now()
        upcoming = await self.client.list_upcoming(
            subject_id,
            time_min=now,
            time_max=now + timedelta(minutes=self.window_min) + _LOOKAHEAD_SLACK,
        )

        events = []
        for event in upcoming:
            start = event.start if event.start.tzinfo else event.start.replace(tzinfo=UTC)
            minutes_until = round((start - now).total_seconds() / 60)
            if not 0 <= minutes_until <= self.window_min:
                continue

            actions = (
                [NotificationAction(label="Open Calendar", url=event.html_link)]
                if event.html_link
                else []
            )
            events.append(
                SourceEvent(
                    # One alert per occurrence of a recurring event
                    source_event_id=f"cal-{event.id}-{start.astimezone(UTC):%Y-%m-%d}",
                    title=f"[Calendar] {event.summary or 'Event'} in {minutes_until} min",
                    body=build_meeting_brief(event, minutes_until),
                    priority=Priority.IMPORTANT,
                    actions=actions,
                )
            )
        return events
