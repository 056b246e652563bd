"""
SQLAlchemy engine and session factory.

Everything in this service is async: the API handlers and the batch runner
they invoke share one asyncpg engine. There is no separate worker
process, so one engine and one session factory are enough.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from config.settings import settings


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


async_engine = create_async_engine(settings.database_url, echo=False)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)


def utcnow() -> datetime:
    """Timezone-aware now; every timestamp column is written in UTC."""
    return datetime.now(timezone.utc)
