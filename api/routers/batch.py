"""
Batch scoring endpoints.

POST /batch/jobs     → Fan out a scoring job over a team or an org
POST /batch/run      → Process the next slice of queued tasks (call until status == done)
GET  /batch/status   → Counts recomputed from tasks + the latest failure reasons
POST /batch/cancel   → Cancel whatever hasn't run yet

Nothing here runs in the background. Progress only happens when a caller
POSTs /batch/run, so a UI polls run → status → run … until the job is done.

Task failures are NOT HTTP errors: a run that fails every task it touched
still returns 200 with counts.failed > 0 and job.error set. The only error
responses are bad input, unknown/unowned jobs, quota, and a missing AI
configuration (503).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis

from api.dependencies import get_db, get_redis, get_caller_id, get_scoring_client
from api.schemas.batch import (
    JobCreate,
    JobCreated,
    RunRequest,
    RunResponse,
    CancelRequest,
    JobView,
    JobStatusResponse,
)
from batch.controller import JobController, JobStatusReport
from batch.errors import BatchError
from batch.runner import BatchRunner
from batch.usage import UsageLimiter
from scoring.errors import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["batch"])


def _http_error(e: BatchError) -> HTTPException:
    return HTTPException(status_code=e.http_status, detail=e.to_detail())


def _status_response(report: JobStatusReport) -> JobStatusResponse:
    job_fields = {
        name: getattr(report.job, name)
        for name in JobView.model_fields
        if name != "percent"
    }
    return JobStatusResponse(
        job=JobView(**job_fields, percent=report.percent),
        counts=report.counts.as_dict(),
        last_failed=report.last_failed,
    )


@router.post("/jobs", response_model=JobCreated, status_code=201)
async def create_job(
    job_in: JobCreate,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    caller_id: str = Depends(get_caller_id),
) -> JobCreated:
    """
    Create a job and one queued task per agent in scope.

    The job starts as "queued"; nothing is scored until /batch/run is called.
    Counts against the caller's daily quota (refunded if the job is rejected).
    """
    limiter = UsageLimiter(redis)
    try:
        await limiter.consume(caller_id)
    except BatchError as e:
        raise _http_error(e)

    try:
        job = await JobController(db).create(
            job_in.scope, job_in.ref_id, job_in.window_size, caller_id
        )
    except BatchError as e:
        await limiter.refund(caller_id)
        raise _http_error(e)

    return JobCreated(job_id=job.id, total=job.total, status=job.status)


@router.post("/run", response_model=RunResponse)
async def run_batch(
    run_in: RunRequest,
    db: AsyncSession = Depends(get_db),
    caller_id: str = Depends(get_caller_id),
    scoring_client=Depends(get_scoring_client),
) -> RunResponse:
    """
    Claim and process up to `take` queued tasks, then return fresh counts.

    Safe to call again and again: a done job returns immediately without
    touching anything, and overlapping calls never process the same task.
    """
    try:
        result = await BatchRunner(db, scoring_client).run(
            run_in.job_id, caller_id, take=run_in.take
        )
    except BatchError as e:
        raise _http_error(e)
    except ConfigurationError as e:
        logger.error(f"Batch run aborted: {e}")
        raise HTTPException(
            status_code=503,
            detail={"code": ConfigurationError.kind, "message": str(e)},
        )

    return RunResponse(**result.as_dict())


@router.get("/status", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str = Query("", description="Job UUID"),
    db: AsyncSession = Depends(get_db),
    caller_id: str = Depends(get_caller_id),
) -> JobStatusResponse:
    """Job fields, per-status counts, percent done and the last few failures."""
    try:
        report = await JobController(db).status(job_id, caller_id)
    except BatchError as e:
        raise _http_error(e)
    return _status_response(report)


@router.post("/cancel", response_model=JobStatusResponse)
async def cancel_job(
    cancel_in: CancelRequest,
    db: AsyncSession = Depends(get_db),
    caller_id: str = Depends(get_caller_id),
) -> JobStatusResponse:
    """
    Cancel a job.

    Queued tasks become "cancelled" right away; a run already in progress
    stops before its next task. Finished tasks keep their results.
    """
    try:
        report = await JobController(db).cancel(cancel_in.job_id, caller_id)
    except BatchError as e:
        raise _http_error(e)
    return _status_response(report)
