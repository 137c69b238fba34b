"""
Pulse engine: wires repositories, notifier, runner and loops together.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import Depends, Request

from pulse.config.settings import Settings
from pulse.infra.database import Database
from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.engine.orchestrator import LoopOrchestrator
from pulse.v1.jobs.handlers import Mailer
from pulse.v1.jobs.registry_init import build_job_registry
from pulse.v1.jobs.repository import JobRepository
from pulse.v1.jobs.runner import JobRunner
from pulse.v1.jobs.service import JobService
from pulse.v1.notifications.ledger import DedupLedger
from pulse.v1.notifications.notifier import NotificationQueue, Notifier
from pulse.v1.reminders.loop import ReminderCheck
from pulse.v1.reminders.repository import ReminderRepository
from pulse.v1.sources.base import SourceCheck
from pulse.v1.sources.calendar import CalendarClient, CalendarSource
from pulse.v1.sources.findings import FindingsScanner, FindingsSource
from pulse.v1.sources.mail import MailboxClient, MailboxSource
from pulse.v1.webhooks.client import GitHubHookClient
from pulse.v1.webhooks.registrar import HookClient, WebhookRegistrar, WebhookSync
from pulse.v1.webhooks.tunnel import PublicEndpoint

logger = logging.getLogger(__name__)


class PulseEngine:
    """
    The background engine of the assistant.

    Collaborators for external systems are optional; a loop is only
    registered when the collaborator it polls is available.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database,
        clock: Clock | None = None,
        mailer: Mailer | None = None,
        mailbox: MailboxClient | None = None,
        calendar: CalendarClient | None = None,
        scanner: FindingsScanner | None = None,
        hook_client: HookClient | None = None,
        endpoint: PublicEndpoint | None = None,
    ):
        self.settings = settings
        self.database = database
        self.clock = clock or SystemClock()
        session_factory = database.SessionLocal

        self.jobs = JobRepository(
            session_factory,
            self.clock,
            create_grace=timedelta(seconds=settings.job_create_grace_s),
        )
        self.reminders = ReminderRepository(session_factory, self.clock)
        self.ledger = DedupLedger(session_factory, self.clock)
        self.queue = NotificationQueue()
        self.notifier = Notifier(self.ledger, self.queue, self.clock)

        self.registry = build_job_registry(self.notifier, mailer)
        self.runner = JobRunner(
            self.jobs,
            self.registry,
            self.notifier,
            self.clock,
            handler_timeout_s=settings.job_handler_timeout_s,
        )
        self.job_service = JobService(self.jobs, self.registry)

        self._owned_hook_client: GitHubHookClient | None = None
        if hook_client is None and settings.github_token:
            self._owned_hook_client = GitHubHookClient(
                base_url=settings.github_api_url,
                token=settings.github_token,
                events=settings.github_hook_events,
                timeout=settings.external_timeout_s,
            )
            hook_client = self._owned_hook_client

        self.registrar = (
            WebhookRegistrar(hook_client, session_factory, self.clock)
            if hook_client is not None
            else None
        )
        self.endpoint = endpoint or PublicEndpoint(
            public_base_url=settings.public_base_url,
            tunnel_api_url=settings.tunnel_api_url,
            port=settings.port,
            timeout=settings.external_timeout_s,
        )

        self.orchestrator = LoopOrchestrator(
            self.clock,
            recovery=self.jobs.reset_stuck,
            shutdown_grace_s=settings.engine_shutdown_grace_s,
        )
        self._register_loops(mailbox, calendar, scanner)

    def _register_loops(
        self,
        mailbox: MailboxClient | None,
        calendar: CalendarClient | None,
        scanner: FindingsScanner | None,
    ) -> None:
        settings = self.settings
        add = self.orchestrator.add_loop

        add("jobs", settings.job_loop_interval_s, self.runner.tick)
        add(
            "reminders",
            settings.reminder_loop_interval_s,
            ReminderCheck(self.reminders, self.notifier, self.clock).tick,
        )

        def subjects() -> list[str]:
            return self.settings.subjects

        if mailbox is not None:
            source = MailboxSource(mailbox, settings.self_sent_markers)
            add(
                "email",
                settings.email_loop_interval_s,
                SourceCheck(source, subjects, self.notifier).tick,
            )
        if calendar is not None:
            source = CalendarSource(
                calendar, self.clock, window_min=settings.calendar_alert_window_min
            )
            add(
                "calendar",
                settings.calendar_loop_interval_s,
                SourceCheck(source, subjects, self.notifier).tick,
            )
        if self.registrar is not None:
            sync = WebhookSync(self.registrar, self.endpoint, settings.webhook_path)
            add("repositories", settings.repository_loop_interval_s, sync.tick)
        if scanner is not None:
            source = FindingsSource(scanner, self.clock)
            add(
                "findings",
                settings.findings_loop_interval_s,
                SourceCheck(source, subjects, self.notifier).tick,
            )

        add("cleanup", settings.cleanup_loop_interval_s, self.cleanup)

    async def cleanup(self, now: datetime | None = None) -> int:
        """Purge dedup records older than the retention window."""
        now = now or self.clock.now()
        return await self.ledger.purge(
            now - timedelta(days=self.settings.dedup_retention_days)
        )

    async def start(self, background: bool = True) -> None:
        logger.info(
            "Starting Pulse engine", extra={"loops": self.orchestrator.loop_names()}
        )
        await self.orchestrator.start(background=background)

    async def stop(self) -> None:
        await self.orchestrator.stop()
        logger.info("Pulse engine stopped")

    async def aclose(self) -> None:
        """Stop the loops and release HTTP clients the engine created."""
        await self.stop()
        if self._owned_hook_client is not None:
            await self._owned_hook_client.aclose()
            self._owned_hook_client = None

    async def status(self) -> dict[str, Any]:
        return {
            **self.orchestrator.status(),
            "jobs": await self.jobs.counts_by_status(),
            "queued_notifications": self.queue.qsize(),
            "handlers": self.registry.list(),
        }


def get_engine(request: Request) -> PulseEngine:
    """Dependency injection for the engine attached to the app."""
    return request.app.state.engine


# Convenience type alias for dependency injection
EngineDep = Depends(get_engine)
