"""
FastAPI dependency injection.

- get_db:             one AsyncSession per request, closed when the request ends
- get_redis:          the Redis client created in the app lifespan
- get_caller_id:      the verified caller id the identity gateway puts in X-Caller-Id
- get_scoring_client: the AI client; tests override this with a scripted fake
"""

from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis

from models.base import AsyncSessionLocal
from scoring.client import ScoringClient


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yields an async database session, auto-closes when the request ends."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_redis(request: Request) -> Redis:
    """Returns the Redis client stored on the app during startup."""
    return request.app.state.redis


async def get_caller_id(x_caller_id: str | None = Header(default=None)) -> str:
    """
    The engine never authenticates anyone itself. The gateway in front of it
    does, and forwards the verified id in X-Caller-Id.
    """
    caller_id = (x_caller_id or "").strip()
    if not caller_id:
        raise HTTPException(status_code=401, detail={"code": "Unauthorized", "message": "Unauthorized"})
    return caller_id


def get_scoring_client() -> ScoringClient:
    return ScoringClient()
