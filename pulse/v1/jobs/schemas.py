"""
Job Pydantic schemas.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pulse.v1.jobs.models import JobStatus, Recurrence


class JobCreate(BaseModel):
    """Schema for scheduling a new job."""

    type: str = Field(..., min_length=1, description="Job type identifier")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    run_at: datetime = Field(..., description="When to run the job")
    recurrence: Recurrence | None = Field(
        default=None, description="hourly, daily, weekly or omitted for one-time"
    )


class JobResponse(BaseModel):
    """Schema for job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    type: str
    payload: dict[str, Any]
    run_at: datetime
    recurrence: str | None = None
    status: str
    attempts: int
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobResponse]
    total: int


class JobScheduledResponse(BaseModel):
    """Schema for a freshly scheduled job."""

    job_id: str
    status: JobStatus
    run_at: datetime
    recurrence: Recurrence | None = None
