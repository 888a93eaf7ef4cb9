import datetime
import os
from collections.abc import AsyncIterator
from pathlib import Path

# Settings are read at import time; point them at SQLite before keepalive loads.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./keepalive-test.db")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from keepalive.core.database import (
    Base,
    build_engine,
    build_session_factory,
    get_db_session,
)
from keepalive.main import create_app
from keepalive.services.liveness import LivenessPolicy
from keepalive.services.ping_store import PingStore


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'keepalive.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def store(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[PingStore]:
    async with session_factory() as session:
        yield PingStore(session)


@pytest.fixture
def app(session_factory: async_sessionmaker[AsyncSession]):
    application = create_app()

    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _session
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture
def policy() -> LivenessPolicy:
    return LivenessPolicy(window=datetime.timedelta(days=4))
