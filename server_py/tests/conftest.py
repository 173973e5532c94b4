"""
Pytest configuration and fixtures.

Settings are read once at import time, so the environment is pointed at a
throwaway directory before anything from ``ticketdesk`` is imported.
"""
import asyncio
import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="ticketdesk-tests-"))
os.environ["DATA_DIR"] = str(_TEST_ROOT)
os.environ["UPLOADS_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{(_TEST_ROOT / 'app.db').as_posix()}"
os.environ["BASE_URL"] = "http://testserver"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ticketdesk.core.database import Base
from ticketdesk.core.init_db import init_db
from ticketdesk.services.attachments import AttachmentStore
from ticketdesk.services.rate_limit import RateLimiter
from ticketdesk.websockets.hub import ChatHub

import ticketdesk.models  # noqa: F401

TEST_BASE_URL = "http://testserver"


# ---------------------------------------------------------------------------
# Async fixtures: a private SQLite file per test
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{(tmp_path / 'test.db').as_posix()}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def attachment_store(tmp_path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "uploads")


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(window_seconds=60, max_requests=100)


@pytest_asyncio.fixture
async def hub(session_factory, attachment_store, rate_limiter):
    chat_hub = ChatHub(
        session_factory=session_factory,
        attachment_store=attachment_store,
        rate_limiter=rate_limiter,
        base_url=TEST_BASE_URL,
        typing_timeout=0.05,
        idle_timeout=60,
        sweep_interval=3600,
    )
    await chat_hub.start()
    yield chat_hub
    await chat_hub.stop()


# ---------------------------------------------------------------------------
# Sync fixtures: the real application on the shared test database
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session", autouse=True)
def _app_database():
    asyncio.run(init_db())
    yield


@pytest.fixture
def app_client():
    from ticketdesk.main import app

    with TestClient(app) as client:
        yield client
