"""
Job registry initialization.

Builds the explicit handler map handed to the JobRunner.
"""

import logging

from pulse.v1.core.registries import JobRegistry
from pulse.v1.jobs.handlers import Mailer, PingHandler, ReminderHandler, SendEmailHandler
from pulse.v1.notifications.notifier import Notifier

logger = logging.getLogger(__name__)


def build_job_registry(notifier: Notifier, mailer: Mailer | None = None) -> JobRegistry:
    """Register the built-in job handlers and freeze the registry."""

    registry = JobRegistry()

    registry.register("ping", PingHandler())
    registry.register("reminder", ReminderHandler(notifier))

    # Email jobs need an outbound mail collaborator
    if mailer is not None:
        registry.register("send_email", SendEmailHandler(mailer, notifier))

    registry.freeze()

    logger.info(
        "Job handlers registered", extra={"registered_handlers": registry.list()}
    )
    return registry
