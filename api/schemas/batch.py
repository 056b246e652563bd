"""
Pydantic schemas for the /batch endpoints.

Request bodies are intentionally loose (plain str / untyped with defaults): the
job controller owns validation so that clients get the named error codes
(InvalidScope, MissingRef, InvalidWindowSize, MissingJobId) instead of a
generic 422.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class JobCreate(BaseModel):
    """Request body for POST /batch/jobs."""

    scope: str = Field(default="team", examples=["team", "org"])
    ref_id: str = Field(default="", examples=["team_sales_eu"])
    window_size: Any = Field(default=30, description="Conversations per agent (10..100)")


class JobCreated(BaseModel):
    job_id: UUID
    total: int
    status: str


class RunRequest(BaseModel):
    """Request body for POST /batch/run."""

    job_id: str = ""
    take: Optional[int] = Field(default=None, description="Tasks to process, clamped to 1..10 (default 3)")


class CancelRequest(BaseModel):
    job_id: str = ""


class TaskCountsView(BaseModel):
    queued: int
    running: int
    done: int
    failed: int
    cancelled: int


class RunResponse(TaskCountsView):
    job_id: UUID
    processed: int
    status: str


class JobView(BaseModel):
    id: UUID
    scope: str
    ref_id: str
    window_size: int
    status: str
    total: int
    progress: int
    error: Optional[str] = None
    cancel_requested: bool
    created_at: datetime
    updated_at: datetime
    percent: int

    model_config = {"from_attributes": True}


class FailedSample(BaseModel):
    agent_id: str
    error: Optional[str] = None
    at: datetime


class JobStatusResponse(BaseModel):
    """Response for GET /batch/status and POST /batch/cancel."""

    job: JobView
    counts: TaskCountsView
    last_failed: list[FailedSample]
