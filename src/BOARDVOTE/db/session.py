# src/BOARDVOTE/db/session.py
from __future__ import annotations

import os

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from BOARDVOTE.core.config import Settings, settings

# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------


def engine_kwargs(cfg: Settings, url: str | URL) -> dict:
    """
    Engine options shared by the app-scoped engine built in the FastAPI
    lifespan and the one-shot engines of the CLI.
    """
    kwargs: dict = {
        "echo": bool(cfg.DB_ECHO),
        "pool_pre_ping": True,  # protects against stale connections
    }
    # Use NullPool in tests (or when explicitly requested) to avoid sharing the same
    # asyncpg connection across event loops.
    if os.getenv("SQLALCHEMY_NULLPOOL", "0") == "1" or cfg.TESTING:
        kwargs["poolclass"] = NullPool

    # Every engine call is a short transaction; bound it server-side.
    if make_url(url).get_backend_name() == "postgresql" and cfg.DB_STATEMENT_TIMEOUT_MS > 0:
        kwargs["connect_args"] = {
            "server_settings": {"statement_timeout": str(cfg.DB_STATEMENT_TIMEOUT_MS)},
        }
    return kwargs


def build_engine(url: str | URL | None = None, cfg: Settings | None = None) -> AsyncEngine:
    cfg = cfg or settings
    url = url or cfg.DATABASE_URL
    return create_async_engine(url, **engine_kwargs(cfg, url))


# ---------------------------------------------------------------------------
# Sessionmaker
# ---------------------------------------------------------------------------

def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit; engine calls commit per operation."""
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
