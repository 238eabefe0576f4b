"""
SmartBrief Backend — Database Engine and Sessions
===================================================

What:  The async engine, the session factory, the declarative Base and the
       per-request session dependency.
How:   One engine per process, created at import from DATABASE_URL. Each
       request gets its own AsyncSession; the dependency commits what the
       handler left pending and rolls back on any exception.

Pool sizing (PostgreSQL):
    pool_size + max_overflow = 30 connections at most per worker, with
    pre-ping and hourly recycling. SQLite URLs skip these options; the
    aiosqlite dialect brings its own pool.

Transactions:
    Credit-bearing work is committed by the RequestOrchestrator while it still
    holds the per-user ledger lock. The commit in `get_db_session` is then a
    no-op for those requests and only matters for plain reads and deletes.
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from smartbrief.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


engine = build_engine(settings.database_url)

# Objects stay readable after commit; responses are built after the orchestrator commits
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Shared metadata for every ORM model (Alembic and test create_all read it)."""


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: one session per request.

    FastAPI caches dependencies per request, so the route handler and
    `get_current_principal` receive the same session.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Closes pooled connections; called on shutdown."""
    await engine.dispose()
