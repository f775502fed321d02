# src/BOARDVOTE/main.py
from __future__ import annotations

import logging
import logging.config
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.responses import JSONResponse

from BOARDVOTE.api.routers.elections import router as elections_router
from BOARDVOTE.api.routers.health import router as health_router
from BOARDVOTE.core.config import Settings, settings as default_settings
from BOARDVOTE.db.session import build_engine, make_sessionmaker
from BOARDVOTE.elections.errors import (
    AlreadyProcessedError,
    DuplicateCandidateError,
    DuplicateVoteError,
    ElectionError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    OutOfOrderError,
    TieUnresolvedError,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(module)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "":               {"handlers": ["console"], "level": "INFO"},
        "uvicorn":        {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.error":  {"handlers": ["console"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

log = logging.getLogger("BOARDVOTE.main")

# Checked in order; subclasses before their parents.
# A losing concurrent close/advance is benign: 202 with its own error_code.
ERROR_STATUS: tuple[tuple[type[ElectionError], int], ...] = (
    (NotFoundError, 404),
    (NotEligibleError, 403),
    (TieUnresolvedError, 409),
    (AlreadyProcessedError, 202),
    (DuplicateVoteError, 409),
    (DuplicateCandidateError, 409),
    (OutOfOrderError, 409),
    (InvalidStateError, 409),
)


def status_for(exc: ElectionError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return 400


def configure_logging() -> None:
    logging.config.dictConfig(LOGGING)


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    cfg: Optional[Settings] = None,
) -> FastAPI:
    cfg = cfg or default_settings

    # define a lifespan handler
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Handles startup/shutdown tasks for the app (runs once on start, once on stop).
        """
        # ---------------- STARTUP ----------------
        owned_engine = None
        if getattr(app.state, "async_sessionmaker", None) is None:
            # DB engine/sessionmaker bound to THIS loop
            owned_engine = build_engine(cfg.DATABASE_URL, cfg)
            app.state.db_engine = owned_engine
            app.state.async_sessionmaker = make_sessionmaker(owned_engine)
        log.info("startup complete: %s %s", cfg.APP_NAME, cfg.APP_VERSION)

        yield

        # ---------------- SHUTDOWN ----------------
        # Close DB engine BEFORE loop closes (prevents asyncpg 'loop is closed')
        if owned_engine is not None:
            await owned_engine.dispose()
            app.state.async_sessionmaker = None

    app = FastAPI(
        title=cfg.APP_NAME,
        version=cfg.APP_VERSION,
        lifespan=lifespan,
    )
    # Tests and embedding callers hand in their own sessionmaker.
    app.state.async_sessionmaker = session_factory
    app.state.settings = cfg

    @app.exception_handler(ElectionError)
    async def election_error_handler(request: Request, exc: ElectionError):
        status_code = status_for(exc)
        log.info(
            "%s %s -> %s %s",
            request.method, request.url.path, status_code, exc,
        )
        return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        """
        Constraint violations the engine did not translate itself.
        - Unique constraint -> 409 Conflict
        - Not-null / FK / Check -> 422 Unprocessable Entity
        - Otherwise -> 400 Bad Request
        """
        orig = getattr(exc, "orig", None)
        message = str(orig or exc)
        low = message.lower()

        status_code = 400
        detail = "Integrity error"
        if "unique constraint" in low or "duplicate key" in low:
            status_code = 409
            detail = "Unique constraint violation"
        elif "foreign key" in low:
            status_code = 422
            detail = "Foreign key constraint failed"
        elif "not null" in low or "null value in column" in low:
            status_code = 422
            detail = "Missing required field (NOT NULL violation)"
        elif "check constraint" in low:
            status_code = 422
            detail = "Check constraint failed"

        log.exception(
            "IntegrityError on %s %s -> %s: %s",
            request.method, request.url.path, status_code, message
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": {"error": "integrity_error", "reason": detail}},
        )

    app.include_router(health_router)
    app.include_router(elections_router)
    return app


def app_factory() -> FastAPI:
    """Entry point for ``uvicorn --factory BOARDVOTE.main:app_factory``."""
    configure_logging()
    return create_app()
