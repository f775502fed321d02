# tests/conftest.py
from __future__ import annotations

import os
import sys
import logging

# Settings() built at import time must never point at a real server.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TESTING", "1")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from BOARDVOTE.core.config import Settings
from BOARDVOTE.db.models import Base, Member
from BOARDVOTE.db.session import build_engine
from BOARDVOTE.elections import ElectionEngine
from BOARDVOTE.main import create_app


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout
        for h in root.handlers
    ):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session", autouse=True)
def anyio_backend():
    return "asyncio"


# =========================
# Database
# =========================
@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'boardvote.db'}",
        TESTING=True,
        FINAL_SCRUTINY_ROUND=3,
        CARRY_OVER_ATTENDANCE=True,
    )


@pytest.fixture
async def db_engine(test_settings):
    """A fresh file-backed SQLite database per test; every session sees the same data."""
    engine = build_engine(test_settings.DATABASE_URL, test_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def engine(session, test_settings) -> ElectionEngine:
    return ElectionEngine(session, test_settings)


@pytest.fixture
async def setup_engine(session_factory, test_settings):
    """
    Engine on its own session for building fixtures.

    Rows it returns are detached once the session closes, so a rollback in the
    test's `session` (every failed engine call) cannot expire them.
    """
    async with session_factory() as s:
        yield ElectionEngine(s, test_settings)


@pytest.fixture
async def members(setup_engine) -> list[Member]:
    """Ten active members plus one former member (is_member=False) at the end."""
    rows = [Member(full_name=f"Member {i:02d}", email=f"member{i:02d}@example.org") for i in range(1, 11)]
    rows.append(Member(full_name="Former Member", email="former@example.org", is_member=False))
    setup_engine.session.add_all(rows)
    await setup_engine.session.commit()
    setup_engine.session.expunge_all()
    return rows


@pytest.fixture
async def positions(setup_engine):
    rows = await setup_engine.orchestrator.ensure_positions(["Presidente", "Vice-Presidente", "Tesoureiro"])
    setup_engine.session.expunge_all()
    return rows


@pytest.fixture
async def election(setup_engine, positions, members):
    row = await setup_engine.orchestrator.open_election("Eleição 2025/2026", [p.id for p in positions])
    setup_engine.session.expunge_all()
    return row


# =========================
# HTTP
# =========================
@pytest.fixture
async def client(session_factory, test_settings):
    app = create_app(session_factory=session_factory, cfg=test_settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
