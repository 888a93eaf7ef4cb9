"""
Async engine and session wiring for the projects table.

The ping path depends on `UPDATE … RETURNING`, which both supported
backends provide: asyncpg/PostgreSQL in deployment, aiosqlite
(SQLite ≥ 3.35) in tests and local runs. build_engine() and
build_session_factory() are shared by the app, the scripts, Alembic
and the test fixtures so every caller gets the same session semantics.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from keepalive.core.config import settings


def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine for `url`.

    Networked backends get pool_pre_ping so a ping arriving after a DB
    restart does not fail on a dead pooled connection. SQLite files have
    nothing to re-check.
    """
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows returned by record_ping are read after commit; keep them loaded.
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_factory = build_session_factory(engine)


class Base(DeclarativeBase):
    """Declarative base; Alembic autogenerates from Base.metadata."""


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. PingStore commits; this only closes."""
    async with async_session_factory() as session:
        yield session
