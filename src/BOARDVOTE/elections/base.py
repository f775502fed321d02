"""
Shared plumbing for election engine components.

Components are thin, stateless wrappers around an ``AsyncSession``: they hold
no cached rows between calls, so any number of engine instances can run
against the same database.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.core.config import Settings, settings as default_settings
from BOARDVOTE.db.models import Election, ElectionPosition
from BOARDVOTE.elections.errors import NotFoundError

log = get_logger("elections")


def is_unique_violation(exc: IntegrityError, constraint: Optional[str] = None) -> bool:
    """
    Best-effort check that an IntegrityError came from a unique constraint/index.

    asyncpg reports the constraint name; SQLite only reports the columns.
    """
    message = str(getattr(exc, "orig", None) or exc)
    if constraint and constraint in message:
        return True
    low = message.lower()
    return "unique" in low or "duplicate key" in low


class EngineComponent:
    def __init__(self, session: AsyncSession, cfg: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = cfg or default_settings

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        One engine call == one transaction.

        Commits when the block exits normally; rolls back and re-raises otherwise,
        so a failed invariant check never leaves partial writes behind.
        """
        try:
            yield self.session
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def load_election(self, election_id: int) -> Election:
        res = await self.session.execute(
            sa.select(Election)
            .where(Election.id == election_id)
            .execution_options(populate_existing=True)
        )
        election = res.scalar_one_or_none()
        if election is None:
            raise NotFoundError(f"Election {election_id} not found", context={"election_id": election_id})
        return election

    async def load_position(
        self,
        election_position_id: int,
        *,
        lock: Optional[str] = None,
    ) -> ElectionPosition:
        """
        Fetch an ElectionPosition, always re-reading the row.

        lock:
          - "share"  -> SELECT ... FOR SHARE (voting: the round must not move underneath us)
          - "update" -> SELECT ... FOR UPDATE (state transitions)
        Ignored on backends without row locks (SQLite).
        """
        stmt = (
            sa.select(ElectionPosition)
            .where(ElectionPosition.id == election_position_id)
            .execution_options(populate_existing=True)
        )
        if lock == "share":
            stmt = stmt.with_for_update(read=True)
        elif lock == "update":
            stmt = stmt.with_for_update()
        res = await self.session.execute(stmt)
        ep = res.scalar_one_or_none()
        if ep is None:
            raise NotFoundError(
                f"Election position {election_position_id} not found",
                context={"election_position_id": election_position_id},
            )
        return ep
