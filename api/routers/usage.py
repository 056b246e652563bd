"""
Usage endpoint.

GET /usage → today's quota counter for the caller (does not consume anything)
"""

from fastapi import APIRouter, Depends
from redis.asyncio import Redis

from api.dependencies import get_redis, get_caller_id
from api.schemas.agents import UsageResponse
from batch.usage import UsageLimiter

router = APIRouter(tags=["usage"])


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    redis: Redis = Depends(get_redis),
    caller_id: str = Depends(get_caller_id),
) -> UsageResponse:
    return UsageResponse(**await UsageLimiter(redis).usage(caller_id))
