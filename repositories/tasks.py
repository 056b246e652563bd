"""
Task repository — every write to batch_tasks goes through here.

All state changes are CONDITIONAL updates, so the task state machine
    queued → running → {done | failed | cancelled}
    queued → cancelled
is enforced by the database, not by whoever happens to hold a stale object:

- claim():        queued  → running     (the atomic claim)
- finish():       running → terminal    (no-op if the task already left running)
- cancel_queued() queued  → cancelled
- reap_stale():   running → failed      (only rows untouched for too long)

No method ever writes status='queued', which is what makes progress counts
monotonic across run invocations.
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.batch import BatchTask
from models.enums import TaskStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimedTask:
    """Just what the runner needs to process a task (no ORM object)."""
    id: uuid.UUID
    agent_id: str
    window_size: int


@dataclass(frozen=True)
class TaskCounts:
    queued: int = 0
    running: int = 0
    done: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.queued + self.running + self.done + self.failed + self.cancelled

    def as_dict(self) -> dict:
        return asdict(self)


class TaskRepository:

    def __init__(self, db: AsyncSession):
        self._db = db

    def add_many(self, job_id: uuid.UUID, agent_ids: list[str], window_size: int) -> None:
        """Stage one queued task per agent. The caller commits together with the job."""
        now = utcnow()
        self._db.add_all([
            BatchTask(
                job_id=job_id,
                agent_id=agent_id,
                window_size=window_size,
                status=TaskStatus.QUEUED.value,
                created_at=now,
                updated_at=now,
            )
            for agent_id in agent_ids
        ])

    async def claim(self, job_id: uuid.UUID, take: int) -> list[ClaimedTask]:
        """
        Atomically move up to `take` queued tasks to running, oldest first.

        One statement:

            UPDATE batch_tasks SET status='running'
            WHERE id IN (SELECT id FROM batch_tasks
                         WHERE job_id=:job AND status='queued'
                         ORDER BY created_at LIMIT :take
                         FOR UPDATE SKIP LOCKED)
              AND status='queued'
            RETURNING id, agent_id, window_size

        Only the rows this statement actually transitioned come back, so two
        overlapping runs can never both get the same task. SKIP LOCKED lets
        a concurrent claimer on Postgres move on to other rows instead of
        waiting; the outer status='queued' re-check is what guarantees
        exclusivity on every backend (SQLite ignores FOR UPDATE and
        serializes writers instead).
        """
        claimable = (
            select(BatchTask.id)
            .where(
                BatchTask.job_id == job_id,
                BatchTask.status == TaskStatus.QUEUED.value,
            )
            .order_by(BatchTask.created_at, BatchTask.id)
            .limit(take)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(BatchTask)
            .where(
                BatchTask.id.in_(claimable),
                BatchTask.status == TaskStatus.QUEUED.value,
            )
            .values(status=TaskStatus.RUNNING.value, updated_at=utcnow())
            .returning(BatchTask.id, BatchTask.agent_id, BatchTask.window_size)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        claimed = [
            ClaimedTask(id=row.id, agent_id=row.agent_id, window_size=row.window_size)
            for row in result.all()
        ]
        await self._db.commit()
        return claimed

    async def finish(
        self,
        task_id: uuid.UUID,
        status: TaskStatus,
        error: str | None = None,
        repaired: bool = False,
    ) -> bool:
        """
        Move a running task to a terminal status.

        Returns False (and changes nothing) if the task is no longer running,
        e.g. it was reaped as stale while this run was still working on it.
        """
        stmt = (
            update(BatchTask)
            .where(
                BatchTask.id == task_id,
                BatchTask.status == TaskStatus.RUNNING.value,
            )
            .values(
                status=status.value,
                error=error,
                repaired=repaired,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        if result.rowcount != 1:
            # also discards anything the caller staged for this outcome (snapshot rows)
            await self._db.rollback()
            logger.warning(f"Task {task_id} was not running, {status.value} not recorded")
            return False
        await self._db.commit()
        return True

    async def cancel_queued(self, job_id: uuid.UUID) -> int:
        """queued → cancelled for every task of the job still waiting. Returns how many."""
        stmt = (
            update(BatchTask)
            .where(
                BatchTask.job_id == job_id,
                BatchTask.status == TaskStatus.QUEUED.value,
            )
            .values(
                status=TaskStatus.CANCELLED.value,
                error="Cancelled: job cancelled before this task ran",
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        await self._db.commit()
        return result.rowcount

    async def reap_stale(self, job_id: uuid.UUID, older_than: datetime) -> int:
        """
        running → failed for tasks whose last update is before `older_than`.

        Those were claimed by a run invocation that died (process killed,
        deploy, crash) and will never be finished by it.
        """
        stmt = (
            update(BatchTask)
            .where(
                BatchTask.job_id == job_id,
                BatchTask.status == TaskStatus.RUNNING.value,
                BatchTask.updated_at < older_than,
            )
            .values(
                status=TaskStatus.FAILED.value,
                error="Timeout: claim expired",
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        await self._db.commit()
        return result.rowcount

    async def counts(self, job_id: uuid.UUID) -> TaskCounts:
        """
        Per-status counts straight from batch_tasks.

        One query with conditional aggregation (COUNT ... FILTER) instead of
        five separate COUNTs.
        """
        def _count(status: TaskStatus):
            return func.count(BatchTask.id).filter(BatchTask.status == status.value)

        query = select(
            _count(TaskStatus.QUEUED).label("queued"),
            _count(TaskStatus.RUNNING).label("running"),
            _count(TaskStatus.DONE).label("done"),
            _count(TaskStatus.FAILED).label("failed"),
            _count(TaskStatus.CANCELLED).label("cancelled"),
        ).where(BatchTask.job_id == job_id)
        row = (await self._db.execute(query)).one()
        return TaskCounts(
            queued=row.queued or 0,
            running=row.running or 0,
            done=row.done or 0,
            failed=row.failed or 0,
            cancelled=row.cancelled or 0,
        )

    async def last_failed(self, job_id: uuid.UUID, limit: int) -> list[BatchTask]:
        query = (
            select(BatchTask)
            .where(
                BatchTask.job_id == job_id,
                BatchTask.status == TaskStatus.FAILED.value,
            )
            .order_by(BatchTask.updated_at.desc())
            .limit(limit)
        )
        result = await self._db.execute(query)
        return list(result.scalars().all())
