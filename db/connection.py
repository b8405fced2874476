"""Async engine and session scope for the CRM database.

The engine is built once at import from DATABASE_URL (PostgreSQL through
asyncpg only). Callers open a unit of work with get_db(); repositories never
commit on their own.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from dotenv import load_dotenv

from config import DB_MAX_OVERFLOW, DB_POOL_SIZE, DB_POOL_TIMEOUT

logger = logging.getLogger(__name__)

load_dotenv()

DRIVER = "postgresql+asyncpg"


def _engine_url() -> URL:
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError(
            "DATABASE_URL is not set; the CRM services need a PostgreSQL database. "
            "Put it in .env or export it before running."
        )
    url = make_url(raw)
    if url.drivername != DRIVER:
        raise RuntimeError(
            f"DATABASE_URL uses driver '{url.drivername}', expected '{DRIVER}'. "
            f"Example: {DRIVER}://crm:secret@localhost:5432/crm"
        )
    return url


_url = _engine_url()
logger.debug("CRM database: %s", _url.render_as_string(hide_password=True))

engine = create_async_engine(
    _url,
    echo=False,
    pool_pre_ping=True,
    pool_size=DB_POOL_SIZE,
    max_overflow=DB_MAX_OVERFLOW,
    pool_timeout=DB_POOL_TIMEOUT,
)

# objects stay readable after commit so services can return them
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_db() -> AsyncIterator[AsyncSession]:
    """One CRM unit of work.

    Commits when the block exits cleanly. Any exception rolls the whole unit
    back, so a health snapshot or stage-change note is never stored without
    the write that triggered it.

        async with get_db() as session:
            score = await health.calculate_health_score(SqlHealthQueries(session), ...)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("CRM transaction rolled back")
            raise


async def dispose_engine() -> None:
    """Close pooled connections; the CLI calls this before its event loop ends."""
    await engine.dispose()
