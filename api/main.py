"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Runs startup logic (create DB tables, connect to Redis)
3. Registers all routers (batch, agents, usage, health)
4. Runs shutdown logic (close connections)

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis as AsyncRedis

from config.settings import settings
from models.base import async_engine, Base
import models.batch  # noqa: F401  (registers tables on Base.metadata)
import models.directory  # noqa: F401
import models.score  # noqa: F401
from api.routers import agents, batch, health, usage

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables if missing, connect to Redis.
    Shutdown: close Redis, dispose the DB connection pool.
    """
    logger.info("Creating database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.redis = AsyncRedis.from_url(settings.redis_url)
    logger.info(f"API ready — scoring model: {settings.SCORING_MODEL}")

    yield

    await app.state.redis.close()
    await async_engine.dispose()
    logger.info("API shut down")


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Batch Scoring",
        description="Fan out AI scoring over agents, drive it by polling, read progress and trends",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(batch.router)
    app.include_router(agents.router)
    app.include_router(usage.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
