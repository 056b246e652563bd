"""
Overlapping run invocations must never process the same task.

Two runners, each with its own session (own connection), claim from the
same job at the same time. This needs a file-backed SQLite database: the
in-memory one lives on a single shared connection.
"""

import asyncio
from collections import Counter

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from models.base import Base
from models.score import AgentScore
from batch.controller import JobController
from batch.runner import BatchRunner
from repositories.tasks import TaskRepository
from conftest import OWNER, ScriptedScoringClient, seed_directory


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'claims.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.mark.asyncio
async def test_overlapping_runs_split_the_work(file_sessions):
    async with file_sessions() as setup:
        await seed_directory(setup, {"team_1": {f"agent_{i}": 6 for i in range(6)}})
        job = await JobController(setup).create("team", "team_1", 10, OWNER)
        job_id = job.id

    client_a = ScriptedScoringClient()
    client_b = ScriptedScoringClient()

    async with file_sessions() as session_a, file_sessions() as session_b:
        result_a, result_b = await asyncio.gather(
            BatchRunner(session_a, client_a).run(str(job_id), OWNER, take=5),
            BatchRunner(session_b, client_b).run(str(job_id), OWNER, take=5),
        )

    # 6 tasks, 5 + 5 requested: one run gets 5, the other the single leftover
    assert sorted([result_a.processed, result_b.processed]) == [1, 5]

    scored = client_a.scored_agents + client_b.scored_agents
    assert len(scored) == 6
    assert set(scored) == {f"agent_{i}" for i in range(6)}
    assert not set(client_a.scored_agents) & set(client_b.scored_agents)

    async with file_sessions() as check:
        counts = await TaskRepository(check).counts(job_id)
        assert counts.done == 6
        assert counts.total == 6
        snapshots = (await check.execute(select(AgentScore.agent_id))).scalars().all()
        assert Counter(snapshots) == Counter({f"agent_{i}": 1 for i in range(6)})


@pytest.mark.asyncio
async def test_claims_never_overlap(file_sessions):
    """Many claimers racing for the same queued rows each get distinct tasks."""
    async with file_sessions() as setup:
        await seed_directory(setup, {"team_1": {f"agent_{i}": 6 for i in range(8)}})
        job = await JobController(setup).create("team", "team_1", 10, OWNER)
        job_id = job.id

    async def claim(take):
        async with file_sessions() as session:
            return await TaskRepository(session).claim(job_id, take)

    batches = await asyncio.gather(*(claim(3) for _ in range(4)))

    claimed_ids = [task.id for batch in batches for task in batch]
    assert len(claimed_ids) == 8
    assert len(set(claimed_ids)) == 8
