"""
Shared test fixtures.

These replace real infrastructure with lightweight in-memory alternatives:
- PostgreSQL → SQLite in memory (via aiosqlite)
- Redis → fakeredis (pure Python Redis mock)
- AI service → ScriptedScoringClient (returns canned text, records prompts)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)

Each test gets a fresh database, so nothing leaks between tests.
"""

import asyncio
import json
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from fakeredis.aioredis import FakeRedis

from models.base import Base, utcnow
from models.directory import Organization, Team, Agent, Conversation
import models.batch  # noqa: F401  (registers tables on Base.metadata)
import models.score  # noqa: F401
from scoring.errors import ConfigurationError
from api.main import create_app
from api.dependencies import get_db, get_redis, get_scoring_client

# SQLite in-memory database — created fresh for each test
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

OWNER = "owner_1"

VALID_SCORE = {
    "overall_score": 72,
    "communication_score": 80,
    "conversion_score": 65,
    "risk_score": 20,
    "coaching_priority": 40,
    "strengths": ["empathy"],
    "weaknesses": ["upsell"],
    "key_patterns": ["long holds"],
}
VALID_TEXT = json.dumps(VALID_SCORE)


class ScriptedScoringClient:
    """
    Stands in for ScoringClient.

    `responses` are consumed one per complete() call; once they run out,
    `default` is returned. A response that is an exception instance is
    raised instead of returned; a callable is called with the prompt.
    """

    def __init__(self, responses=None, default=VALID_TEXT, configured=True):
        self.responses = list(responses or [])
        self.default = default
        self.configured = configured
        self.calls = []

    def ensure_configured(self):
        if not self.configured:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    async def complete(self, prompt, max_output_tokens=None):
        self.calls.append(prompt)
        # let other coroutines interleave, like a real network call would
        await asyncio.sleep(0)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt)
        return response

    @property
    def scored_agents(self) -> list[str]:
        """agent_id of every scoring prompt sent (repair prompts skipped)."""
        agents = []
        for prompt in self.calls:
            last_line = prompt.splitlines()[-1]
            if last_line.startswith("{") and '"agent_id"' in last_line:
                agents.append(json.loads(last_line)["agent_id"])
        return agents


async def seed_directory(session, teams: dict, owner_id: str = OWNER, org_id: str = "org_1"):
    """
    Insert one org owned by `owner_id` and its teams/agents/conversations.

    teams: {"team_1": {"agent_1": 6, "agent_2": 3}} → conversations per agent
    Agents are created in the order given (one second apart), which is the
    order a job fans out in.
    """
    now = utcnow()
    session.add(Organization(id=org_id, name=f"Org {org_id}", owner_id=owner_id))
    await session.flush()

    offset = 0
    for team_id, agents in teams.items():
        session.add(Team(id=team_id, organization_id=org_id, name=team_id))
        await session.flush()
        for agent_id, n_convs in agents.items():
            offset += 1
            session.add(Agent(
                id=agent_id, team_id=team_id, name=agent_id,
                created_at=now - timedelta(hours=1) + timedelta(seconds=offset),
            ))
            for i in range(n_convs):
                session.add(Conversation(
                    id=f"{agent_id}_c{i:03d}",
                    agent_id=agent_id,
                    transcript=f"transcript {i} of {agent_id}",
                    report_json=None,
                    created_at=now - timedelta(minutes=i),
                ))
    await session.commit()


@pytest_asyncio.fixture
async def async_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(async_engine):
    """Create a database session bound to the test engine."""
    factory = async_sessionmaker(async_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def fake_redis():
    """Create a fake Redis instance (in-memory, no real Redis needed)."""
    r = FakeRedis()
    yield r
    await r.flushall()


@pytest.fixture
def scoring_client():
    """A client that answers every call with a valid score."""
    return ScriptedScoringClient()


@pytest.fixture
def seed(async_session):
    """await seed({"team_1": {"agent_1": 6}}) → directory rows in the test DB."""
    async def _seed(teams, owner_id=OWNER, org_id="org_1"):
        await seed_directory(async_session, teams, owner_id=owner_id, org_id=org_id)
    return _seed


@pytest_asyncio.fixture
async def client(async_session, fake_redis, scoring_client):
    """
    Create a test HTTP client that talks directly to the FastAPI app.

    dependency_overrides swaps the real session, Redis and AI client for
    the test versions. Requests carry X-Caller-Id: owner_1 unless a test
    overrides the header.
    """
    app = create_app()

    async def override_get_db():
        yield async_session

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_scoring_client] = lambda: scoring_client

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Caller-Id": OWNER},
    ) as c:
        yield c
