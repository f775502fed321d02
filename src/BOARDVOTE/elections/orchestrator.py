"""
Election Orchestrator.

Walks an election's positions strictly by order index, one open at a time,
and closes the election once every position is completed.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.base import utcnow
from BOARDVOTE.db.models import Election, ElectionAuditLog, ElectionPosition, Position, PositionStatus
from BOARDVOTE.elections.audit_log import list_admin_actions
from BOARDVOTE.elections.base import EngineComponent, is_unique_violation
from BOARDVOTE.elections.errors import (
    AllPositionsCompletedError,
    ElectionAlreadyActiveError,
    InvalidStateError,
    NotFoundError,
    OutOfOrderError,
)
from BOARDVOTE.elections.positions import PositionStateMachine

log = get_logger("elections.orchestrator")


class ElectionOrchestrator(EngineComponent):

    @property
    def positions(self) -> PositionStateMachine:
        return PositionStateMachine(self.session, self.settings)

    async def active_election(self) -> Optional[Election]:
        res = await self.session.execute(
            sa.select(Election)
            .where(Election.is_active.is_(True))
            .order_by(Election.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def current_position(self, election_id: int) -> Optional[ElectionPosition]:
        res = await self.session.execute(
            sa.select(ElectionPosition)
            .where(
                ElectionPosition.election_id == election_id,
                ElectionPosition.status == PositionStatus.active.value,
            )
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def admin_actions(self, election_id: int) -> List[ElectionAuditLog]:
        """Overrides, resets and voids recorded for an election, oldest first."""
        await self.load_election(election_id)
        return await list_admin_actions(self.session, election_id)

    async def ensure_positions(self, names: Optional[Iterable[str]] = None) -> List[Position]:
        """Idempotently seed the position catalog; returns the requested positions in order."""
        wanted = [n.strip() for n in (names if names is not None else self.settings.DEFAULT_POSITIONS) if n.strip()]
        async with self.transaction():
            res = await self.session.execute(sa.select(Position).where(Position.name.in_(wanted)))
            existing = {p.name: p for p in res.scalars().all()}
            for name in wanted:
                if name not in existing:
                    position = Position(name=name)
                    self.session.add(position)
                    existing[name] = position
                    log.info("created position %r", name)
            await self.session.flush()
            ordered = [existing[name] for name in dict.fromkeys(wanted)]
        return ordered

    async def open_election(self, name: str, position_ids: Optional[Sequence[int]] = None) -> Election:
        """
        Create and activate an election with one pending ElectionPosition per position.

        Args:
            name: display name, e.g. "Eleição 2025/2026"
            position_ids: processing order; defaults to catalog order
        """
        async with self.transaction():
            current = await self.active_election()
            if current is not None:
                raise ElectionAlreadyActiveError(
                    f"Election {current.id} is still active",
                    context={"active_election_id": current.id},
                )

            if position_ids is None:
                res = await self.session.execute(sa.select(Position.id).order_by(Position.id))
                ordered_ids = list(res.scalars().all())
            else:
                ordered_ids = list(position_ids)
                if len(set(ordered_ids)) != len(ordered_ids):
                    raise InvalidStateError("A position can appear only once per election",
                                            context={"position_ids": ordered_ids})
                res = await self.session.execute(sa.select(Position.id).where(Position.id.in_(ordered_ids)))
                missing = sorted(set(ordered_ids) - set(res.scalars().all()))
                if missing:
                    raise NotFoundError("Unknown positions", context={"position_ids": missing})
            if not ordered_ids:
                raise InvalidStateError("An election needs at least one position")

            election = Election(name=name, is_active=True)
            self.session.add(election)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                if is_unique_violation(exc, "uq_elections_single_active"):
                    raise ElectionAlreadyActiveError("Another election is already active", cause=exc) from exc
                raise

            for order_index, position_id in enumerate(ordered_ids):
                self.session.add(
                    ElectionPosition(
                        election_id=election.id,
                        position_id=position_id,
                        order_index=order_index,
                        status=PositionStatus.pending.value,
                        current_scrutiny=1,
                    )
                )
            await self.session.flush()
            election_id = election.id

        log.info("opened election=%s name=%r positions=%s", election_id, name, ordered_ids)
        return election

    async def advance(self, election_id: int) -> ElectionPosition:
        """
        Open the next pending position by order index.

        Raises:
            OutOfOrderError: a position is still active
            AllPositionsCompletedError: nothing left; the election has been closed
        """
        position_id: Optional[int] = None
        async with self.transaction():
            election = await self.load_election(election_id)
            if election.is_closed:
                raise AllPositionsCompletedError(
                    "Election is already closed", context={"election_id": election_id}
                )

            res = await self.session.execute(
                sa.select(ElectionPosition)
                .where(
                    ElectionPosition.election_id == election_id,
                    ElectionPosition.status != PositionStatus.completed.value,
                )
                .order_by(ElectionPosition.order_index)
                .limit(1)
                .execution_options(populate_existing=True)
            )
            nxt = res.scalar_one_or_none()
            if nxt is None:
                await self._close(election)
            elif nxt.status == PositionStatus.active.value:
                raise OutOfOrderError(
                    "Current position must be completed before advancing",
                    context={"election_id": election_id, "election_position_id": nxt.id},
                )
            else:
                position_id = nxt.position_id

        if position_id is None:
            raise AllPositionsCompletedError(
                "All positions completed; election closed", context={"election_id": election_id}
            )
        return await self.positions.open_position(election_id, position_id)

    async def _close(self, election: Election) -> None:
        res = await self.session.execute(
            sa.update(Election)
            .where(Election.id == election.id, Election.closed_at.is_(None))
            .values(is_active=False, closed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount:
            log.info("closed election=%s", election.id)
