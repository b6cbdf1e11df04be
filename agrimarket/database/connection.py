"""
Database Connection Management

One async engine per process over the marketplace database. Reporting only
reads, so sessions are never committed with pending changes; `get_db` still
rolls back on error so a failed query leaves the connection clean.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Union
import time

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from agrimarket.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before `init_database()`"""


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and verify connectivity with `SELECT 1`.

    Args:
        url: Overrides the configured async URL
    """
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    engine = create_async_engine(
        url or settings.database.async_url,
        echo=settings.database.echo,
        poolclass=NullPool,
    )
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        await engine.dispose()
        raise

    _engine = engine
    _session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    logger.info("Database connected", url=engine.url.render_as_string(hide_password=True))
    return _engine


async def close_database() -> None:
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")


def session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise DatabaseNotInitializedError("Database not initialized. Call init_database() first.")
    return _session_factory


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session scope.

    Example:
        async with get_db() as db:
            orders = await SqlOrderReader(db).orders_in_window(window)
    """
    async with session_factory()() as session:
        try:
            yield session
        except Exception as e:
            logger.warning("Rolling back session", error_type=type(e).__name__)
            await session.rollback()
            raise


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping `get_db`."""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Union[str, float]]:
    """Round-trip `SELECT 1` and report latency, or the failure."""
    started = time.perf_counter()
    try:
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}

    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
