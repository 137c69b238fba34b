"""
Job runner: executes due jobs through the handler registry.

One cycle of a job is::

    pending --[mark_running wins]--> running --[handler]--> done | failed

A recurring job re-enters pending after success *and* failure, with run_at
advanced by one unit from the time the cycle was scheduled. Failures are not
retried; each failed cycle produces one failure notification.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.core.exceptions import HandlerExecutionError, HandlerNotFoundError
from pulse.v1.core.registries import JobContext, JobRegistry
from pulse.v1.jobs.models import Job, JobStatus
from pulse.v1.jobs.recurrence import advance
from pulse.v1.jobs.repository import JobRepository
from pulse.v1.notifications.notifier import Notifier, Priority

logger = logging.getLogger(__name__)

FAILURE_SOURCE = "job"


@dataclass
class JobOutcome:
    """What one tick did to one job."""

    job_id: str
    job_type: str
    status: str
    error: str | None = None
    next_run_at: datetime | None = None

    @property
    def claimed(self) -> bool:
        return self.status != "skipped"


class JobRunner:
    """Dispatches due jobs and applies the recurrence and failure policy."""

    def __init__(
        self,
        repository: JobRepository,
        registry: JobRegistry,
        notifier: Notifier,
        clock: Clock | None = None,
        handler_timeout_s: float = 60.0,
    ):
        self.repository = repository
        self.registry = registry
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.handler_timeout_s = handler_timeout_s

    async def tick(self, now: datetime | None = None) -> list[JobOutcome]:
        """Run every job due at ``now``, oldest first."""
        now = now or self.clock.now()
        due = await self.repository.due_jobs(now)
        if not due:
            return []

        logger.info("Processing due jobs", extra={"job_count": len(due)})
        outcomes = []
        for job in due:
            outcomes.append(await self.execute(job))
        return outcomes

    async def execute(self, job: Job) -> JobOutcome:
        """Run one cycle of ``job`` if this caller wins the claim."""
        if not await self.repository.mark_running(job.id, job.run_at):
            return JobOutcome(job_id=job.id, job_type=job.type, status="skipped")

        context = JobContext(
            job_id=job.id,
            job_type=job.type,
            owner_id=job.owner_id,
            run_at=job.run_at,
        )

        error: HandlerNotFoundError | HandlerExecutionError | None = None
        try:
            await self._dispatch(job, context)
        except (HandlerNotFoundError, HandlerExecutionError) as e:
            error = e

        next_run_at = advance(job.run_at, job.recurrence) if job.is_recurring() else None

        if error is None:
            if next_run_at is not None:
                await self.repository.reschedule(job.id, next_run_at)
            else:
                await self.repository.mark_done(job.id)
            logger.info(
                "Job completed",
                extra={
                    "job_id": job.id,
                    "type": job.type,
                    "next_run_at": next_run_at.isoformat() if next_run_at else None,
                },
            )
            return JobOutcome(
                job_id=job.id,
                job_type=job.type,
                status=JobStatus.DONE.value,
                next_run_at=next_run_at,
            )

        # Recurring jobs keep their series alive after a failed cycle
        if next_run_at is not None:
            await self.repository.reschedule(job.id, next_run_at, error=error.message)
        else:
            await self.repository.mark_failed(job.id, error.message)

        logger.error(
            "Job failed",
            extra={
                "job_id": job.id,
                "type": job.type,
                "error": error.message,
                "error_type": error.__class__.__name__,
            },
        )
        await self._notify_failure(job, context, error.message)

        return JobOutcome(
            job_id=job.id,
            job_type=job.type,
            status=JobStatus.FAILED.value,
            error=error.message,
            next_run_at=next_run_at,
        )

    async def _dispatch(self, job: Job, context: JobContext) -> None:
        handler = self.registry.get(job.type)
        try:
            await asyncio.wait_for(
                handler.handle(job.payload or {}, job.owner_id, context),
                timeout=self.handler_timeout_s,
            )
        except TimeoutError:
            raise HandlerExecutionError(
                job.type,
                f"Handler timed out after {self.handler_timeout_s:g}s",
                timed_out=True,
            ) from None
        except HandlerExecutionError:
            raise
        except Exception as e:
            raise HandlerExecutionError(job.type, str(e) or e.__class__.__name__) from e

    async def _notify_failure(
        self, job: Job, context: JobContext, message: str
    ) -> None:
        await self.notifier.notify(
            subject_id=job.owner_id,
            source=FAILURE_SOURCE,
            source_event_id=f"{context.epoch}:failed",
            priority=Priority.IMPORTANT,
            title="[FAILED] Scheduled task failed",
            body=f"{job.type}: {message}",
        )
