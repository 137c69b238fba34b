"""
Job scheduling API endpoints.
"""

import logging
from typing import Any

from fastapi import APIRouter, Query, Request, status

from pulse.v1.core.exceptions import create_success_response
from pulse.v1.core.security import Principal, PrincipalDep
from pulse.v1.engine.pulse import EngineDep, PulseEngine
from pulse.v1.jobs.models import JobStatus
from pulse.v1.jobs.schemas import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobScheduledResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def schedule_job(
    job_request: JobCreate,
    request: Request,
    principal: Principal = PrincipalDep,
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """Schedule a one-time or recurring job."""

    job = await engine.job_service.schedule(job_request, principal)

    result = JobScheduledResponse(
        job_id=job.id,
        status=JobStatus(job.status),
        run_at=job.run_at,
        recurrence=job.recurrence,
    )
    return create_success_response(
        data=result.model_dump(mode="json"),
        message="Job scheduled",
        request_id=getattr(request.state, "request_id", None),
    )


@router.get("", response_model=dict)
async def list_jobs(
    status: list[JobStatus] | None = Query(
        default=None, description="Filter by status"
    ),
    principal: Principal = PrincipalDep,
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """List the caller's jobs, soonest first."""

    jobs = await engine.job_service.list_jobs(principal, status)
    response_data = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=len(jobs),
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: str,
    principal: Principal = PrincipalDep,
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """Get a specific job by ID."""

    job = await engine.job_service.get_job(job_id, principal)
    return create_success_response(
        data=JobResponse.model_validate(job).model_dump(mode="json")
    )


@router.delete("/{job_id}", response_model=dict)
async def cancel_job(
    job_id: str,
    principal: Principal = PrincipalDep,
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """Cancel a pending job. Running and finished jobs cannot be cancelled."""

    await engine.job_service.cancel_job(job_id, principal)
    return create_success_response(
        data={"success": True, "job_id": job_id}, message="Job cancelled"
    )
