"""
Batch runner — one bounded, synchronous unit of work on a job.

There is no background worker. A caller (UI timer, cron, scripts/drain_job.py)
invokes run() repeatedly until the job reports done. Each invocation:

    1. authorize the job (NotFound otherwise)
    2. job already done → return counts, touch nothing (unless it still has
       running tasks: those get the stale-claim check of step 3)
    3. mark the job running; fail tasks left running by a crashed run
    4. atomically claim up to `take` queued tasks (oldest first)
    5. nothing claimed → recompute (→ done) and return
    6. for each claimed task, one after another:
           window fetch → prompt → score_with_repair → snapshot + history → done
       any error is classified, sanitized and stored; the loop moves on
    7. recompute counts; job is done iff nothing is queued
    8. return the counts

Worst case per invocation: take × (one window read + two AI calls), each
with its own timeout, so a run can't hang on a stuck external call.

ConfigurationError is the one error that ends the invocation early: every
later task would fail the same way, so the remaining claimed tasks are failed
with the same reason (tasks never go back to queued) and the error is raised.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.base import utcnow
from models.enums import JobStatus, TaskStatus
from repositories.jobs import JobRepository
from repositories.scores import ScoreRepository
from repositories.tasks import TaskRepository, TaskCounts, ClaimedTask
from scoring.errors import ConfigurationError, TaskFailure, classify_error
from scoring.prompts import build_scoring_prompt
from scoring.repair import ScoreOutcome, score_with_repair
from scoring.window import WindowFetcher
from batch.controller import JobController

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    job_id: uuid.UUID
    processed: int      # tasks this invocation took to done/failed
    counts: TaskCounts
    status: str

    def as_dict(self) -> dict:
        return {
            "job_id": str(self.job_id),
            "processed": self.processed,
            **self.counts.as_dict(),
            "status": self.status,
        }


def clamp_take(take) -> int:
    """None → settings.DEFAULT_TAKE; anything else forced into 1..MAX_TAKE."""
    if take is None:
        return settings.DEFAULT_TAKE
    return min(max(int(take), 1), settings.MAX_TAKE)


class BatchRunner:

    def __init__(self, db: AsyncSession, scoring_client):
        self._db = db
        self._client = scoring_client
        self._controller = JobController(db)
        self._jobs = JobRepository(db)
        self._tasks = TaskRepository(db)
        self._scores = ScoreRepository(db)
        self._window = WindowFetcher(db)

    async def run(self, job_id, caller_id: str, take: int | None = None) -> RunResult:
        """
        Drive up to `take` queued tasks of one job to a terminal state.

        Raises:
            MissingJobId / NotFound: job can't be resolved for this caller
            ConfigurationError: AI credentials missing or rejected
        """
        take = clamp_take(take)

        # ── Step 1-2: authorize, done jobs are a no-op ──────────────
        job = await self._controller.get_owned_job(job_id, caller_id)
        # a failed task rolls the session back, which expires `job`; keep the id as a value
        job_id = job.id
        if job.status == JobStatus.DONE.value:
            counts = await self._tasks.counts(job_id)
            if counts.running == 0:
                return RunResult(job_id, 0, counts, JobStatus.DONE.value)
            # drained, but claims from a crashed run may still be open
            await self._reap_stale(job_id)
            return await self._finish(job_id, processed=0)

        # Before claiming anything: a run that can't possibly score must not
        # move tasks out of queued
        self._client.ensure_configured()

        # ── Step 3: running + crash recovery ────────────────────────
        await self._jobs.mark_running(job_id)
        await self._reap_stale(job_id)

        # ── Step 4-5: atomic claim ──────────────────────────────────
        claimed = await self._tasks.claim(job_id, take)
        if not claimed:
            return await self._finish(job_id, processed=0)
        logger.info(f"Job {job_id}: claimed {len(claimed)} tasks (take={take})")

        # ── Step 6: process sequentially ────────────────────────────
        processed = 0
        for index, task in enumerate(claimed):
            if await self._jobs.is_cancel_requested(job_id):
                await self._cancel_remaining(claimed[index:])
                break

            failure = await self._process_task(job_id, task)
            processed += 1

            if failure is not None and failure.fatal:
                await self._fail_remaining(claimed[index + 1:], failure)
                await self._finish(job_id, processed)
                logger.error(f"Job {job_id}: run aborted, {failure.as_error_text()}")
                raise ConfigurationError(failure.message)

        # ── Step 7-8: recompute from tasks ──────────────────────────
        return await self._finish(job_id, processed)

    async def _process_task(self, job_id: uuid.UUID, task: ClaimedTask) -> TaskFailure | None:
        """Run one task to done/failed. Returns the failure, or None on success."""
        try:
            outcome = await asyncio.wait_for(
                self._score(task), timeout=settings.TASK_TIMEOUT
            )
        except Exception as e:
            failure = classify_error(e)
            # whatever the failed step left in the session must not be committed
            await self._db.rollback()
            await self._tasks.finish(task.id, TaskStatus.FAILED, error=failure.as_error_text())
            logger.warning(
                f"Task {task.id} [agent {task.agent_id}] failed: {failure.as_error_text()}"
            )
            return failure

        self._scores.add_result(
            task.agent_id,
            task.window_size,
            outcome.parsed,
            repaired=outcome.used_repair,
            job_id=job_id,
        )
        if await self._tasks.finish(task.id, TaskStatus.DONE, repaired=outcome.used_repair):
            suffix = " (repaired)" if outcome.used_repair else ""
            logger.info(
                f"Task {task.id} [agent {task.agent_id}] done, "
                f"overall={outcome.parsed.overall_score:g}{suffix}"
            )
        return None

    async def _score(self, task: ClaimedTask) -> ScoreOutcome:
        items = await self._window.fetch(task.agent_id, task.window_size)
        prompt = build_scoring_prompt(task.agent_id, task.window_size, items)
        return await score_with_repair(self._client, prompt)

    async def _reap_stale(self, job_id: uuid.UUID) -> None:
        cutoff = utcnow() - timedelta(seconds=settings.STALE_TASK_SECONDS)
        reaped = await self._tasks.reap_stale(job_id, cutoff)
        if reaped:
            logger.warning(f"Job {job_id}: {reaped} stale running tasks marked failed")

    async def _cancel_remaining(self, tasks: list[ClaimedTask]) -> None:
        for task in tasks:
            await self._tasks.finish(
                task.id,
                TaskStatus.CANCELLED,
                error="Cancelled: job cancelled while this run was in progress",
            )
        logger.info(f"Cancellation seen, {len(tasks)} claimed tasks cancelled")

    async def _fail_remaining(self, tasks: list[ClaimedTask], failure: TaskFailure) -> None:
        for task in tasks:
            await self._tasks.finish(task.id, TaskStatus.FAILED, error=failure.as_error_text())

    async def _finish(self, job_id: uuid.UUID, processed: int) -> RunResult:
        counts = await self._tasks.counts(job_id)
        fields = await self._jobs.recompute(job_id, counts)
        if fields["status"] == JobStatus.DONE.value:
            logger.info(
                f"Job {job_id} drained: done={counts.done} failed={counts.failed} "
                f"cancelled={counts.cancelled}"
            )
        return RunResult(job_id, processed, counts, fields["status"])
