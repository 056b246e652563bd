"""
Job repository — reads batch_jobs and writes its derived fields.

The job row holds only two things the tasks can't tell you: the immutable
fan-out facts (scope, ref_id, window_size, total) and the cancel flag.
status / progress / error are always rewritten from a fresh TaskCounts
by recompute(), never incremented in place.
"""

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.batch import BatchJob
from models.enums import JobStatus
from repositories.tasks import TaskCounts


def derive_job_fields(counts: TaskCounts) -> dict:
    """
    status/progress/error for a job, given its task counts.

    A job is done once nothing is queued, however many tasks failed:
    failures are reported through `error`, never by blocking completion.
    """
    return {
        "status": JobStatus.DONE.value if counts.queued == 0 else JobStatus.RUNNING.value,
        "progress": counts.done,
        "error": f"failed_tasks={counts.failed}" if counts.failed > 0 else None,
    }


class JobRepository:

    def __init__(self, db: AsyncSession):
        self._db = db

    def add(self, job: BatchJob) -> None:
        self._db.add(job)

    async def get(self, job_id: uuid.UUID) -> BatchJob | None:
        # populate_existing: status/progress are changed with UPDATE statements,
        # so an object already in the identity map may be stale
        query = (
            select(BatchJob)
            .where(BatchJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(query)
        return result.scalar_one_or_none()

    async def mark_running(self, job_id: uuid.UUID) -> None:
        """queued/running → running. A done job is left alone."""
        await self._db.execute(
            update(BatchJob)
            .where(BatchJob.id == job_id, BatchJob.status != JobStatus.DONE.value)
            .values(status=JobStatus.RUNNING.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._db.commit()

    async def recompute(self, job_id: uuid.UUID, counts: TaskCounts) -> dict:
        """Write status/progress/error derived from `counts`; returns what was written."""
        fields = derive_job_fields(counts)
        await self._db.execute(
            update(BatchJob)
            .where(BatchJob.id == job_id)
            .values(**fields, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._db.commit()
        return fields

    async def request_cancel(self, job_id: uuid.UUID) -> None:
        await self._db.execute(
            update(BatchJob)
            .where(BatchJob.id == job_id)
            .values(cancel_requested=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self._db.commit()

    async def is_cancel_requested(self, job_id: uuid.UUID) -> bool:
        result = await self._db.execute(
            select(BatchJob.cancel_requested).where(BatchJob.id == job_id)
        )
        return bool(result.scalar_one_or_none())
