"""
Job controller — fan-out, ownership, status and cancellation.

create()  is the ONLY place tasks are created: one job + one queued task per
          agent, committed together. Calling it twice gives two independent
          jobs.
status()  never trusts the job row's progress cache; counts come straight
          from batch_tasks.
cancel()  flags the job and cancels whatever is still queued; a run that is
          in flight notices the flag before its next task.

Ownership: a job is visible to a caller only if the job's scope (team or
org) resolves to an organization the caller owns. Anything else → NotFound,
same as a job that doesn't exist.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.batch import BatchJob
from models.enums import JobStatus, Scope
from repositories.directory import DirectoryRepository
from repositories.jobs import JobRepository
from repositories.tasks import TaskRepository, TaskCounts
from batch.errors import (
    InvalidScope,
    MissingRef,
    InvalidWindowSize,
    MissingJobId,
    NotFound,
    NoEntitiesFound,
)

logger = logging.getLogger(__name__)


@dataclass
class JobStatusReport:
    job: BatchJob
    counts: TaskCounts
    percent: int
    last_failed: list[dict]


def percent_done(done: int, total: int) -> int:
    """round(done / total * 100), halves rounded up; 0 for an empty job."""
    if total <= 0:
        return 0
    return (200 * done + total) // (2 * total)


def validate_window_size(window_size) -> int:
    if isinstance(window_size, bool) or not isinstance(window_size, int):
        raise InvalidWindowSize(
            f"Invalid windowSize ({settings.MIN_WINDOW_SIZE}..{settings.MAX_WINDOW_SIZE})"
        )
    if not settings.MIN_WINDOW_SIZE <= window_size <= settings.MAX_WINDOW_SIZE:
        raise InvalidWindowSize(
            f"Invalid windowSize ({settings.MIN_WINDOW_SIZE}..{settings.MAX_WINDOW_SIZE})"
        )
    return window_size


class JobController:

    def __init__(self, db: AsyncSession):
        self._db = db
        self._jobs = JobRepository(db)
        self._tasks = TaskRepository(db)
        self._directory = DirectoryRepository(db)

    async def create(self, scope, ref_id: str, window_size: int, caller_id: str) -> BatchJob:
        """
        Fan out one job over every agent in scope.

        Raises:
            InvalidScope, MissingRef, InvalidWindowSize: bad input
            NoEntitiesFound: the scope resolves to no agent the caller owns
        """
        try:
            scope = Scope(scope)
        except ValueError:
            raise InvalidScope("Invalid scope (team|org)") from None

        ref_id = str(ref_id or "").strip()
        if not ref_id:
            raise MissingRef("Missing refId")

        window_size = validate_window_size(window_size)

        agent_ids = await self._directory.agents_in_scope(
            scope, ref_id, caller_id, limit=settings.MAX_AGENTS_PER_JOB
        )
        if not agent_ids:
            raise NoEntitiesFound("No agents found for this scope")

        job = BatchJob(
            id=uuid.uuid4(),
            scope=scope.value,
            ref_id=ref_id,
            window_size=window_size,
            created_by=caller_id,
            status=JobStatus.QUEUED.value,
            total=len(agent_ids),
            progress=0,
        )
        self._jobs.add(job)
        self._tasks.add_many(job.id, agent_ids, window_size)
        await self._db.commit()

        logger.info(
            f"Job {job.id} created [{scope.value}:{ref_id}] "
            f"with {job.total} tasks, window={window_size}"
        )
        return job

    async def get_owned_job(self, job_id, caller_id: str) -> BatchJob:
        """
        Load a job the caller is allowed to see.

        Raises:
            MissingJobId: job_id is empty
            NotFound: malformed id, no such job, or scope not owned by caller
        """
        if isinstance(job_id, uuid.UUID):
            uid = job_id
        else:
            raw = str(job_id or "").strip()
            if not raw:
                raise MissingJobId("Missing jobId")
            try:
                uid = uuid.UUID(raw)
            except ValueError:
                raise NotFound("Job not found") from None

        job = await self._jobs.get(uid)
        if job is None:
            raise NotFound("Job not found")
        if not await self._directory.owns_scope(Scope(job.scope), job.ref_id, caller_id):
            raise NotFound("Job not found")
        return job

    async def status(self, job_id, caller_id: str) -> JobStatusReport:
        job = await self.get_owned_job(job_id, caller_id)
        return await self._report(job)

    async def cancel(self, job_id, caller_id: str) -> JobStatusReport:
        """
        Stop a job: queued tasks → cancelled, in-flight runs stop at the next task.

        Cancelling a drained job changes nothing and just reports its status.
        """
        job = await self.get_owned_job(job_id, caller_id)
        if job.status == JobStatus.DONE.value:
            return await self._report(job)

        await self._jobs.request_cancel(job.id)
        cancelled = await self._tasks.cancel_queued(job.id)
        await self._jobs.recompute(job.id, await self._tasks.counts(job.id))
        logger.info(f"Job {job.id} cancelled by {caller_id}: {cancelled} queued tasks dropped")

        job = await self._jobs.get(job.id)
        return await self._report(job)

    async def _report(self, job: BatchJob) -> JobStatusReport:
        counts = await self._tasks.counts(job.id)
        failed = await self._tasks.last_failed(job.id, settings.FAILED_SAMPLE_SIZE)
        return JobStatusReport(
            job=job,
            counts=counts,
            percent=percent_done(counts.done, job.total),
            last_failed=[
                {"agent_id": t.agent_id, "error": t.error, "at": t.updated_at}
                for t in failed
            ],
        )
