"""
Jobs router.

- POST /jobs                    - Create a job (owner = caller)
- GET  /jobs                    - List jobs
- GET  /jobs/stalled            - Active jobs with nothing registered and overdue
- GET  /jobs/{job_id}           - Job status
- POST /jobs/{job_id}/trigger   - Record a firing (gateway callback target, or owner)
- POST /jobs/{job_id}/cancel    - Stop a chain

Engine errors map to HTTP:
    ValidationError -> 422, AuthorizationError -> 403, NotFoundError -> 404,
    AlreadyTriggeredError / AlreadyActiveError / ConcurrentUpdateError -> 409
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from src.engine.entities import JobKind
from src.engine.errors import (
    AlreadyActiveError,
    AlreadyTriggeredError,
    AuthorizationError,
    ConcurrentUpdateError,
    EngineError,
    NotFoundError,
    ValidationError,
)

from ..schemas.jobs import JobCreateRequest, JobListResponse, JobResponse, TriggerPayload
from ..dependencies.auth import resolve_caller_id
from .._engine_state import get_engine_service


logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_error(e: EngineError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (AlreadyTriggeredError, AlreadyActiveError, ConcurrentUpdateError)):
        return HTTPException(status_code=409, detail=str(e))
    logger.error(f"Unexpected engine error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=JobResponse, status_code=201)
def create_job(
    request: JobCreateRequest,
    caller_id: str = Depends(resolve_caller_id),
):
    """
    Create a job owned by the caller and place its first invocation.

    A RECURRING job is refused with 409 while the caller already owns a
    live recurring chain. If placement fails the job is still created;
    it shows up with has_pending_schedule=false.
    """
    engine = get_engine_service().engine

    try:
        job_id = engine.create_job(
            owner_id=caller_id,
            kind=JobKind(request.kind),
            interval_seconds=request.interval_seconds,
        )
        return JobResponse.from_view(engine.get_job(job_id))
    except EngineError as e:
        raise _to_http_error(e)


@router.get("", response_model=JobListResponse)
def list_jobs(
    owner_id: Optional[str] = Query(default=None, description="Filter by owner"),
    active: Optional[bool] = Query(default=None, description="Filter by active flag"),
    limit: int = Query(default=100, ge=1, le=1000),
):
    """List jobs, newest first."""
    engine = get_engine_service().engine
    views = engine.list_jobs(owner_id=owner_id, active=active, limit=limit)
    return JobListResponse(
        jobs=[JobResponse.from_view(v) for v in views],
        total=len(views),
    )


@router.get("/stalled", response_model=JobListResponse)
def list_stalled_jobs():
    """
    Active jobs whose fire time has passed with nothing registered.

    These chains will not fire again on their own.
    """
    engine = get_engine_service().engine
    views = engine.find_stalled_jobs()
    return JobListResponse(
        jobs=[JobResponse.from_view(v) for v in views],
        total=len(views),
    )


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: int):
    """Get job status."""
    engine = get_engine_service().engine

    try:
        return JobResponse.from_view(engine.get_job(job_id))
    except EngineError as e:
        raise _to_http_error(e)


@router.post("/{job_id}/trigger", response_model=JobResponse)
def trigger_job(
    job_id: int,
    payload: Optional[TriggerPayload] = Body(default=None),
    caller_id: str = Depends(resolve_caller_id),
):
    """
    Record a firing.

    This is the target every job registers at the gateway
    ({ENGINE_CALLBACK_URL}/{job_id}/trigger). The gateway POSTs the
    registered payload with X-Scheduler-Token; the owner may call it
    manually without a body.
    """
    if payload is not None and payload.job_id != job_id:
        raise HTTPException(
            status_code=422,
            detail=f"Payload job_id {payload.job_id} does not match path job_id {job_id}",
        )

    engine = get_engine_service().engine

    try:
        return JobResponse.from_view(engine.trigger(job_id, caller_id))
    except EngineError as e:
        raise _to_http_error(e)


@router.post("/{job_id}/cancel", response_model=JobResponse)
def cancel_job(job_id: int, caller_id: str = Depends(resolve_caller_id)):
    """Stop a chain. Owner only; idempotent."""
    engine = get_engine_service().engine

    try:
        return JobResponse.from_view(engine.cancel(job_id, caller_id))
    except EngineError as e:
        raise _to_http_error(e)
