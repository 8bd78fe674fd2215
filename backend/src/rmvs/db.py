"""Connection managers for the verification service.

PostgreSQL holds suggestions, resources and verification records; Redis
carries the live event stream for viewers of an in-flight pass.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings, get_settings

# =========================
# PostgreSQL
# =========================

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the asyncpg-backed engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.api_debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return _engine


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on success and rolls back on error.

    Usage:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(), expire_on_commit=False, autoflush=False
        )

    session = _session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def ping_postgres() -> None:
    """Raise if PostgreSQL cannot answer a trivial query."""
    async with get_db_session() as session:
        await session.execute(text("SELECT 1"))


# =========================
# Redis (event stream)
# =========================

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis client used for event publication."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            get_settings().redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def get_event_redis(settings: Settings | None = None) -> redis.Redis | None:
    """Redis client for live events, or None when publishing is disabled."""
    settings = settings or get_settings()
    if not settings.publish_events:
        return None
    return await get_redis()


async def ping_redis() -> None:
    """Raise if Redis does not answer PING."""
    client = await get_redis()
    await client.ping()


# =========================
# Shutdown
# =========================


async def close_all_connections() -> None:
    """Dispose the engine and close the Redis client."""
    global _engine, _session_factory, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
