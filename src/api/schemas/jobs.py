"""
Job API schemas.

Request/response models for the /jobs endpoints.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from src.engine.entities import JobView


class JobCreateRequest(BaseModel):
    """Request to create a job. The owner is the calling identity."""

    kind: Literal["ONE_SHOT", "RECURRING"] = Field(
        ...,
        description="ONE_SHOT fires once; RECURRING re-places itself every interval",
    )
    interval_seconds: int = Field(
        ...,
        description="Initial delay and recurrence period in seconds (must be > 0)",
    )


class JobResponse(BaseModel):
    """Read-only snapshot of a job."""

    job_id: int = Field(..., description="Unique, monotonically assigned job id")
    owner_id: str = Field(..., description="Identity that created the job")
    kind: str = Field(..., description="ONE_SHOT or RECURRING")
    interval_seconds: int = Field(..., description="Recurrence period in seconds")
    next_fire_time: int = Field(..., description="Epoch second of the current or last placed invocation")
    trigger_count: int = Field(..., description="Number of recorded firings")
    active: bool = Field(..., description="Whether the chain keeps placing invocations")
    has_pending_schedule: bool = Field(..., description="Whether an invocation is registered at the gateway")
    last_triggered_at: Optional[int] = Field(default=None, description="Epoch second of the last firing")

    @classmethod
    def from_view(cls, view: JobView) -> "JobResponse":
        return cls(
            job_id=view.job_id,
            owner_id=view.owner_id,
            kind=view.kind.value,
            interval_seconds=view.interval_seconds,
            next_fire_time=view.next_fire_time,
            trigger_count=view.trigger_count,
            active=view.active,
            has_pending_schedule=view.has_pending_schedule,
            last_triggered_at=view.last_triggered_at,
        )


class JobListResponse(BaseModel):
    """Response for job list endpoints."""

    jobs: List[JobResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of jobs returned")


class TriggerPayload(BaseModel):
    """Body the scheduling gateway delivers with each invocation."""

    job_id: int = Field(..., description="Job the invocation was registered for")
