"""
Job repository: typed operations over the scheduled_jobs table.

The conditional updates in this module are the only concurrency control the
engine has. ``mark_running`` succeeds for exactly one caller per cycle.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.core.exceptions import ValidationError
from pulse.v1.jobs.models import Job, JobStatus, Recurrence
from pulse.v1.jobs.recurrence import parse_recurrence

logger = logging.getLogger(__name__)


class JobRepository:
    """Job CRUD, status transitions and recurrence rescheduling."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        create_grace: timedelta = timedelta(seconds=60),
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.create_grace = create_grace

    async def create(
        self,
        owner_id: str,
        type: str,
        run_at: datetime,
        payload: dict[str, Any] | None = None,
        recurrence: str | Recurrence | None = None,
        job_id: str | None = None,
    ) -> Job:
        """
        Insert a pending job.

        Raises:
            ValidationError: run_at is further in the past than the grace
                tolerance, or the recurrence is unknown.
        """
        if run_at.tzinfo is None:
            run_at = run_at.replace(tzinfo=UTC)

        now = self.clock.now()
        if run_at < now - self.create_grace:
            raise ValidationError(
                "Scheduled time is in the past. Please provide a future date/time.",
                details={"run_at": run_at.isoformat(), "now": now.isoformat()},
            )

        rule = parse_recurrence(recurrence)
        job = Job(
            id=job_id or str(uuid4()),
            owner_id=owner_id,
            type=type,
            payload=payload or {},
            run_at=run_at,
            recurrence=rule.value if rule else None,
            status=JobStatus.PENDING.value,
            attempts=0,
            created_at=now,
            updated_at=now,
        )

        async with self.session_factory() as session:
            session.add(job)
            await session.commit()

        logger.info(
            "Job created",
            extra={
                "job_id": job.id,
                "type": type,
                "owner_id": owner_id,
                "run_at": run_at.isoformat(),
                "recurrence": job.recurrence,
            },
        )
        return job

    async def get(self, job_id: str) -> Job | None:
        async with self.session_factory() as session:
            return await session.get(Job, job_id)

    async def list_for_owner(
        self, owner_id: str, statuses: Iterable[JobStatus] | None = None
    ) -> list[Job]:
        """Jobs of one owner, soonest first."""
        query = select(Job).where(Job.owner_id == owner_id)
        if statuses:
            query = query.where(Job.status.in_([s.value for s in statuses]))
        query = query.order_by(Job.run_at, Job.id)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def due_jobs(self, now: datetime) -> list[Job]:
        """Pending jobs with run_at <= now, oldest first, ties broken by id."""
        query = (
            select(Job)
            .where(and_(Job.status == JobStatus.PENDING.value, Job.run_at <= now))
            .order_by(Job.run_at, Job.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def mark_running(self, job_id: str, run_at: datetime | None = None) -> bool:
        """
        Claim a pending job.

        Args:
            job_id: Job to claim
            run_at: Scheduled time of the cycle the caller saw. When given, the
                claim fails once that cycle has been run and the job re-armed.

        Returns:
            True if this caller moved the job from pending to running.
        """
        conditions = [] if run_at is None else [Job.run_at == run_at]
        won = await self._transition(
            job_id,
            from_statuses=[JobStatus.PENDING],
            conditions=conditions,
            status=JobStatus.RUNNING.value,
            attempts=Job.attempts + 1,
        )
        if not won:
            logger.debug("Job claim lost", extra={"job_id": job_id})
        return won

    async def mark_done(self, job_id: str) -> bool:
        return await self._transition(
            job_id,
            from_statuses=[JobStatus.RUNNING],
            status=JobStatus.DONE.value,
            last_error=None,
        )

    async def mark_failed(self, job_id: str, error: str | None = None) -> bool:
        return await self._transition(
            job_id,
            from_statuses=[JobStatus.RUNNING],
            status=JobStatus.FAILED.value,
            last_error=error,
        )

    async def reschedule(
        self, job_id: str, next_run_at: datetime, error: str | None = None
    ) -> bool:
        """Send a running recurring job back to pending at ``next_run_at``."""
        return await self._transition(
            job_id,
            from_statuses=[JobStatus.RUNNING],
            status=JobStatus.PENDING.value,
            run_at=next_run_at,
            last_error=error,
        )

    async def reset_stuck(self) -> int:
        """Make every job left running by a dead process pending again."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Job)
                .where(Job.status == JobStatus.RUNNING.value)
                .values(status=JobStatus.PENDING.value, updated_at=self.clock.now())
            )
            await session.commit()

        recovered = result.rowcount or 0
        if recovered:
            logger.warning(
                "Recovered stuck jobs from previous session",
                extra={"stuck_job_count": recovered},
            )
        return recovered

    async def cancel(self, job_id: str, owner_id: str | None = None) -> bool:
        """
        Delete a pending job.

        Returns:
            False when the job does not exist, belongs to someone else, or is
            already running or finished.
        """
        conditions = [Job.id == job_id, Job.status == JobStatus.PENDING.value]
        if owner_id is not None:
            conditions.append(Job.owner_id == owner_id)

        async with self.session_factory() as session:
            result = await session.execute(delete(Job).where(and_(*conditions)))
            await session.commit()

        cancelled = (result.rowcount or 0) > 0
        if cancelled:
            logger.info("Job cancelled", extra={"job_id": job_id})
        return cancelled

    async def counts_by_status(self) -> dict[str, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            return dict(result.all())

    async def _transition(
        self,
        job_id: str,
        from_statuses: list[JobStatus],
        conditions: list[Any] | None = None,
        **values: Any,
    ) -> bool:
        """Compare-and-swap on status. Returns whether a row changed."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(Job)
                .where(
                    and_(
                        Job.id == job_id,
                        Job.status.in_([s.value for s in from_statuses]),
                        *(conditions or []),
                    )
                )
                .values(updated_at=self.clock.now(), **values)
            )
            await session.commit()
        return (result.rowcount or 0) > 0
