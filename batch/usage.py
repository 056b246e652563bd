"""
Daily usage quota, stored in Redis.

One counter per (UTC day, caller):

    scoring:usage:2025-03-02:user_42  →  INCR on every job creation or
                                          single-agent scoring call

The key expires two days after its first increment, so yesterday's counters
clean themselves up. Keeping the counter in Redis rather than in process
memory means every API instance sees the same number.
"""

import logging

from redis.asyncio import Redis

from config.settings import settings
from models.base import utcnow
from batch.errors import QuotaExceeded

logger = logging.getLogger(__name__)

KEY_PREFIX = "scoring:usage"
KEY_TTL_SECONDS = 2 * 24 * 60 * 60


def _today() -> str:
    return utcnow().strftime("%Y-%m-%d")


class UsageLimiter:

    def __init__(self, redis: Redis, limit: int | None = None):
        self._redis = redis
        self._limit = settings.DAILY_SCORING_LIMIT if limit is None else limit

    @staticmethod
    def key(caller_id: str, day: str | None = None) -> str:
        return f"{KEY_PREFIX}:{day or _today()}:{caller_id}"

    async def consume(self, caller_id: str) -> int:
        """
        Count one unit of usage. Returns the new count for today.

        Raises QuotaExceeded (and gives the unit back) once the limit is hit.
        """
        key = self.key(caller_id)
        used = await self._redis.incr(key)
        if used == 1:
            await self._redis.expire(key, KEY_TTL_SECONDS)
        if used > self._limit:
            await self._redis.decr(key)
            logger.info(f"Caller {caller_id} hit the daily limit ({self._limit})")
            raise QuotaExceeded(f"Daily limit of {self._limit} reached")
        return used

    async def usage(self, caller_id: str) -> dict:
        day = _today()
        raw = await self._redis.get(self.key(caller_id, day))
        used = int(raw) if raw else 0
        return {
            "day": day,
            "used": used,
            "remaining": max(0, self._limit - used),
            "limit": self._limit,
        }

    async def refund(self, caller_id: str) -> None:
        """Give back a unit consumed for a request that was then rejected."""
        await self._redis.decr(self.key(caller_id))
