"""
Repository findings source.

A scan reports the risk findings a resource currently has. The set is signed
with a content signature plus the UTC day, so an unchanged, unresolved set
re-alerts at most once per day and any change alerts immediately.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.core.exceptions import TransientExternalError
from pulse.v1.notifications.notifier import NotificationAction, Priority
from pulse.v1.notifications.signatures import CLEAN_SIGNATURE, content_signature
from pulse.v1.sources.base import SourceEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Finding:
    severity: str
    message: str


class FindingsScanner(Protocol):
    async def list_resources(self, subject_id: str) -> list[str]: ...

    async def scan(self, subject_id: str, resource_id: str) -> list[Finding]: ...


class FindingsSource:
    name = "github"

    def __init__(
        self,
        scanner: FindingsScanner,
        clock: Clock | None = None,
        resource_url_template: str = "https://github.com/{resource_id}",
    ):
        self.scanner = scanner
        self.clock = clock or SystemClock()
        self.resource_url_template = resource_url_template

    async def poll(self, subject_id: str) -> list[SourceEvent]:
        events = []
        for resource_id in await self.scanner.list_resources(subject_id):
            try:
                findings = await self.scanner.scan(subject_id, resource_id)
            except TransientExternalError as e:
                logger.warning(
                    "Resource scan unavailable",
                    extra={"resource_id": resource_id, "error": e.message},
                )
                continue
            except Exception:
                logger.exception(
                    "Resource scan failed", extra={"resource_id": resource_id}
                )
                continue

            signature = content_signature(
                (f.message for f in findings), bucket=self.clock.now()
            )
            if signature == CLEAN_SIGNATURE:
                continue

            critical = any(f.severity.lower() == "critical" for f in findings)
            url = self.resource_url_template.format(resource_id=resource_id)
            events.append(
                SourceEvent(
                    source_event_id=f"guardian-{resource_id}-{signature}",
                    title=f"[ALERT] Risks detected: {resource_id}",
                    body=", ".join(f.message for f in findings),
                    priority=Priority.URGENT if critical else Priority.IMPORTANT,
                    actions=[NotificationAction(label="View Repo", url=url)],
                )
            )
        return events
