"""
Job service: request-facing operations on scheduled jobs.
"""

import logging

from pulse.v1.core.exceptions import NotFoundError, ValidationError
from pulse.v1.core.registries import JobRegistry
from pulse.v1.core.security import Principal
from pulse.v1.jobs.models import Job, JobStatus
from pulse.v1.jobs.repository import JobRepository
from pulse.v1.jobs.schemas import JobCreate

logger = logging.getLogger(__name__)


class JobService:
    """Validates job requests against the handler registry and owner scope."""

    def __init__(self, repository: JobRepository, registry: JobRegistry):
        self.repository = repository
        self.registry = registry

    async def schedule(self, job_create: JobCreate, principal: Principal) -> Job:
        """
        Schedule a job on behalf of the principal.

        Raises:
            ValidationError: unknown job type, past run_at, bad recurrence
        """
        if job_create.type not in self.registry:
            raise ValidationError(
                f"Unknown job type: {job_create.type}",
                details={"type": job_create.type, "known_types": self.registry.list()},
            )

        return await self.repository.create(
            owner_id=principal.user_id,
            type=job_create.type,
            run_at=job_create.run_at,
            payload=job_create.payload,
            recurrence=job_create.recurrence,
        )

    async def list_jobs(
        self, principal: Principal, statuses: list[JobStatus] | None = None
    ) -> list[Job]:
        return await self.repository.list_for_owner(principal.user_id, statuses)

    async def get_job(self, job_id: str, principal: Principal) -> Job:
        job = await self.repository.get(job_id)
        if job is None or job.owner_id != principal.user_id:
            raise NotFoundError("Job not found", details={"job_id": job_id})
        return job

    async def cancel_job(self, job_id: str, principal: Principal) -> None:
        """
        Cancel a pending job owned by the principal.

        Raises:
            NotFoundError: the job is missing, foreign, or no longer pending
        """
        if not await self.repository.cancel(job_id, owner_id=principal.user_id):
            raise NotFoundError(
                "Job not found or no longer pending", details={"job_id": job_id}
            )
        logger.info(
            "Job cancelled via API",
            extra={"job_id": job_id, "user_id": principal.user_id},
        )
