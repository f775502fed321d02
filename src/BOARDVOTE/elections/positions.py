"""
Position State Machine.

    pending -> active -> completed
                 |  ^
                 +--+  scrutiny 1 .. FINAL_SCRUTINY_ROUND

Every transition is a compare-and-set UPDATE guarded on the current
``status``/``current_scrutiny``; a caller that loses the race gets
``AlreadyProcessedError`` instead of a second transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.base import utcnow
from BOARDVOTE.db.models import (
    AuditAction,
    Candidate,
    DecidedBy,
    ElectionAttendance,
    ElectionPosition,
    ElectionWinner,
    PositionStatus,
    Vote,
)
from BOARDVOTE.elections.attendance import AttendanceLedger
from BOARDVOTE.elections.audit_log import record_admin_action
from BOARDVOTE.elections.base import EngineComponent
from BOARDVOTE.elections.errors import (
    AlreadyProcessedError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    OutOfOrderError,
    TieUnresolvedError,
)
from BOARDVOTE.elections.majority import (
    DecidedByPlurality,
    Decision,
    Elected,
    NextScrutiny,
    TieUnresolved,
    majority_threshold,
    resolve,
)
from BOARDVOTE.elections.scrutiny import ScrutinyCounter, TallyEntry

log = get_logger("elections.positions")

PENDING = PositionStatus.pending.value
ACTIVE = PositionStatus.active.value
COMPLETED = PositionStatus.completed.value


@dataclass(frozen=True)
class RoundOutcome:
    """What ``close_scrutiny_round`` decided and persisted."""

    election_position_id: int
    scrutiny_round: int
    present_count: int
    majority_threshold: int
    tally: Tuple[TallyEntry, ...]
    decision: Decision
    status: str
    next_scrutiny: Optional[int] = None
    winner_candidate_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "election_position_id": self.election_position_id,
            "scrutiny_round": self.scrutiny_round,
            "present_count": self.present_count,
            "majority_threshold": self.majority_threshold,
            "tally": [e._asdict() for e in self.tally],
            "decision": self.decision.kind,
            "status": self.status,
            "next_scrutiny": self.next_scrutiny,
            "winner_candidate_id": self.winner_candidate_id,
        }


class PositionStateMachine(EngineComponent):

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _compare_and_set(
        self,
        ep: ElectionPosition,
        *,
        expected_status: str,
        expected_round: Optional[int] = None,
        **values: Any,
    ) -> bool:
        conditions = [ElectionPosition.id == ep.id, ElectionPosition.status == expected_status]
        if expected_round is not None:
            conditions.append(ElectionPosition.current_scrutiny == expected_round)
        res = await self.session.execute(
            sa.update(ElectionPosition)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def _blocking_positions(self, ep: ElectionPosition) -> Dict[str, list]:
        """Earlier positions not yet completed, and any other active position."""
        res = await self.session.execute(
            sa.select(ElectionPosition.id, ElectionPosition.order_index, ElectionPosition.status).where(
                ElectionPosition.election_id == ep.election_id,
                ElectionPosition.id != ep.id,
                sa.or_(
                    sa.and_(ElectionPosition.order_index < ep.order_index, ElectionPosition.status != COMPLETED),
                    ElectionPosition.status == ACTIVE,
                ),
            )
        )
        rows = res.all()
        return {
            "unfinished_predecessors": [r.id for r in rows if r.order_index < ep.order_index and r.status != COMPLETED],
            "active": [r.id for r in rows if r.status == ACTIVE],
        }

    async def _started_successors(self, ep: ElectionPosition) -> list:
        """Later positions (by order index) that are no longer pending."""
        res = await self.session.execute(
            sa.select(ElectionPosition.id)
            .where(
                ElectionPosition.election_id == ep.election_id,
                ElectionPosition.order_index > ep.order_index,
                ElectionPosition.status != PENDING,
            )
            .order_by(ElectionPosition.order_index)
        )
        return list(res.scalars().all())

    async def _require_candidate(self, ep: ElectionPosition, candidate_id: int) -> Candidate:
        candidate = await self.session.get(Candidate, candidate_id)
        if candidate is None or candidate.election_id != ep.election_id or candidate.position_id != ep.position_id:
            raise NotEligibleError(
                "Candidate does not run for this position",
                context={"election_position_id": ep.id, "candidate_id": candidate_id},
            )
        return candidate

    # ------------------------------------------------------------------
    # open
    # ------------------------------------------------------------------
    async def open_position(self, election_id: int, position_id: int) -> ElectionPosition:
        """
        pending -> active, scrutiny 1.

        Only the next position by order index may open, and never while
        another position of the election is active.
        """
        ctx: Dict[str, Any] = {"election_id": election_id, "position_id": position_id}
        async with self.transaction():
            election = await self.load_election(election_id)
            if election.is_closed or not election.is_active:
                raise InvalidStateError("Election is not active", context=ctx)

            res = await self.session.execute(
                sa.select(ElectionPosition)
                .where(
                    ElectionPosition.election_id == election_id,
                    ElectionPosition.position_id == position_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            ep = res.scalar_one_or_none()
            if ep is None:
                raise NotFoundError("Position is not part of this election", context=ctx)
            ctx["election_position_id"] = ep.id

            if ep.status == ACTIVE:
                raise AlreadyProcessedError("Position is already open", context=ctx)
            if ep.status == COMPLETED:
                raise InvalidStateError("Position is already completed", context=ctx)

            blocking = await self._blocking_positions(ep)
            if blocking["unfinished_predecessors"]:
                raise OutOfOrderError(
                    "Earlier positions must be completed first",
                    context={**ctx, "unfinished": blocking["unfinished_predecessors"]},
                )
            if blocking["active"]:
                raise OutOfOrderError(
                    "Another position is already open",
                    context={**ctx, "active": blocking["active"]},
                )

            try:
                won = await self._compare_and_set(
                    ep,
                    expected_status=PENDING,
                    status=ACTIVE,
                    current_scrutiny=1,
                    opened_at=utcnow(),
                    closed_at=None,
                )
            except IntegrityError as exc:
                # single-active partial unique index
                raise OutOfOrderError("Another position is already open", context=ctx, cause=exc) from exc
            if not won:
                raise AlreadyProcessedError("Position was opened concurrently", context=ctx)

            if self.settings.CARRY_OVER_ATTENDANCE:
                await AttendanceLedger(self.session, self.settings).carry_over(ep)

            await self.session.refresh(ep)

        log.info("opened election_position=%s (election=%s order=%s)", ep.id, ep.election_id, ep.order_index)
        return ep

    # ------------------------------------------------------------------
    # close a round
    # ------------------------------------------------------------------
    async def close_scrutiny_round(
        self,
        election_position_id: int,
        expected_round: Optional[int] = None,
    ) -> RoundOutcome:
        """
        Close the current scrutiny round: tally, resolve, persist.

        Raises:
            TieUnresolvedError: final round tied or nobody present; nothing written
            AlreadyProcessedError: position completed, or the round moved on
        """
        final_round = self.settings.FINAL_SCRUTINY_ROUND
        async with self.transaction():
            ep = await self.load_position(election_position_id, lock="update")
            ctx: Dict[str, Any] = {"election_position_id": ep.id, "current_scrutiny": ep.current_scrutiny}
            if ep.status == COMPLETED:
                raise AlreadyProcessedError("Position is already completed", context=ctx)
            if ep.status != ACTIVE:
                raise InvalidStateError(f"Position is not open (status={ep.status})", context=ctx)
            if expected_round is not None and expected_round != ep.current_scrutiny:
                raise AlreadyProcessedError(
                    f"Scrutiny round {expected_round} was already closed",
                    context={**ctx, "expected_round": expected_round},
                )

            scrutiny_round = ep.current_scrutiny
            tally = tuple(
                await ScrutinyCounter(self.session).tally_for(ep.election_id, ep.position_id, scrutiny_round)
            )
            present = await AttendanceLedger(self.session, self.settings).present_count(ep.id)
            decision = resolve(tally, present, scrutiny_round, final_round)
            threshold = majority_threshold(present)

            if isinstance(decision, TieUnresolved):
                log.warning(
                    "tie unresolved election_position=%s round=%s present=%s tally=%s",
                    ep.id, scrutiny_round, present, list(tally),
                )
                raise TieUnresolvedError(
                    "No winner can be determined; an administrator must decide",
                    candidate_ids=decision.candidate_ids,
                    tally=tally,
                    context={**ctx, "present_count": present},
                )

            if isinstance(decision, NextScrutiny):
                won = await self._compare_and_set(
                    ep,
                    expected_status=ACTIVE,
                    expected_round=scrutiny_round,
                    current_scrutiny=scrutiny_round + 1,
                )
                if not won:
                    raise AlreadyProcessedError("Scrutiny round was closed concurrently", context=ctx)
                outcome = RoundOutcome(
                    election_position_id=ep.id,
                    scrutiny_round=scrutiny_round,
                    present_count=present,
                    majority_threshold=threshold,
                    tally=tally,
                    decision=decision,
                    status=ACTIVE,
                    next_scrutiny=scrutiny_round + 1,
                )
            else:
                decided_by = DecidedBy.majority if isinstance(decision, Elected) else DecidedBy.plurality
                await self._complete(ep, decision.candidate_id, scrutiny_round, decided_by, ctx)
                outcome = RoundOutcome(
                    election_position_id=ep.id,
                    scrutiny_round=scrutiny_round,
                    present_count=present,
                    majority_threshold=threshold,
                    tally=tally,
                    decision=decision,
                    status=COMPLETED,
                    winner_candidate_id=decision.candidate_id,
                )

        log.info(
            "closed round election_position=%s round=%s decision=%s tally=%s",
            outcome.election_position_id, outcome.scrutiny_round, outcome.decision.kind, list(outcome.tally),
        )
        return outcome

    async def _complete(
        self,
        ep: ElectionPosition,
        candidate_id: int,
        scrutiny_round: int,
        decided_by: DecidedBy,
        ctx: Dict[str, Any],
    ) -> ElectionWinner:
        won = await self._compare_and_set(
            ep,
            expected_status=ACTIVE,
            expected_round=scrutiny_round,
            status=COMPLETED,
            closed_at=utcnow(),
        )
        if not won:
            raise AlreadyProcessedError("Position was completed concurrently", context=ctx)

        winner = ElectionWinner(
            election_id=ep.election_id,
            position_id=ep.position_id,
            candidate_id=candidate_id,
            won_at_scrutiny=scrutiny_round,
            decided_by=decided_by.value,
        )
        self.session.add(winner)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise AlreadyProcessedError("Winner already recorded", context=ctx, cause=exc) from exc
        return winner

    # ------------------------------------------------------------------
    # administrative
    # ------------------------------------------------------------------
    async def force_winner(
        self,
        election_position_id: int,
        candidate_id: int,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> ElectionWinner:
        """
        Administrative override (re-vote outcome, chair's casting vote).

        Bypasses the resolver, records the winner at the current round and
        completes the position. Audit logged.
        """
        async with self.transaction():
            ep = await self.load_position(election_position_id, lock="update")
            ctx: Dict[str, Any] = {"election_position_id": ep.id, "candidate_id": candidate_id}
            if ep.status == COMPLETED:
                raise AlreadyProcessedError("Position is already completed", context=ctx)
            if ep.status != ACTIVE:
                raise InvalidStateError(f"Position is not open (status={ep.status})", context=ctx)
            await self._require_candidate(ep, candidate_id)

            scrutiny_round = ep.current_scrutiny
            winner = await self._complete(ep, candidate_id, scrutiny_round, DecidedBy.override, ctx)
            await record_admin_action(
                self.session,
                election_id=ep.election_id,
                election_position_id=ep.id,
                actor_id=actor_id,
                action=AuditAction.force_winner,
                details={"candidate_id": candidate_id, "scrutiny_round": scrutiny_round, "reason": reason},
            )
        return winner

    async def reset_position(
        self,
        election_position_id: int,
        actor_id: Optional[int] = None,
        *,
        clear_attendance: bool = False,
        reopen: bool = False,
    ) -> ElectionPosition:
        """
        Wipe a position's ballots and winner and return it to scrutiny 1.

        The position goes back to ``pending``; with ``reopen`` it becomes
        ``active`` again right away (subject to the usual ordering rules).
        Refused once a later position has been opened.
        Never invoked automatically.
        """
        async with self.transaction():
            ep = await self.load_position(election_position_id, lock="update")
            ctx: Dict[str, Any] = {"election_position_id": ep.id, "status": ep.status}
            election = await self.load_election(ep.election_id)
            if election.is_closed:
                raise InvalidStateError("Election is closed", context=ctx)

            # statuses stay monotonic along order_index
            started = await self._started_successors(ep)
            if started:
                raise OutOfOrderError(
                    "Later positions have already been opened",
                    context={**ctx, "started": started},
                )

            if reopen:
                blocking = await self._blocking_positions(ep)
                if blocking["unfinished_predecessors"] or blocking["active"]:
                    raise OutOfOrderError("Position cannot be reopened now", context={**ctx, **blocking})

            votes_deleted = (
                await self.session.execute(
                    sa.delete(Vote)
                    .where(Vote.election_id == ep.election_id, Vote.position_id == ep.position_id)
                    .execution_options(synchronize_session=False)
                )
            ).rowcount
            winners_deleted = (
                await self.session.execute(
                    sa.delete(ElectionWinner)
                    .where(
                        ElectionWinner.election_id == ep.election_id,
                        ElectionWinner.position_id == ep.position_id,
                    )
                    .execution_options(synchronize_session=False)
                )
            ).rowcount
            attendance_deleted = 0
            if clear_attendance:
                attendance_deleted = (
                    await self.session.execute(
                        sa.delete(ElectionAttendance)
                        .where(ElectionAttendance.election_position_id == ep.id)
                        .execution_options(synchronize_session=False)
                    )
                ).rowcount

            # Leave pending first so the single-active index never sees two rows.
            await self.session.execute(
                sa.update(ElectionPosition)
                .where(ElectionPosition.id == ep.id)
                .values(status=PENDING, current_scrutiny=1, opened_at=None, closed_at=None)
                .execution_options(synchronize_session=False)
            )
            if reopen:
                try:
                    await self._compare_and_set(ep, expected_status=PENDING, status=ACTIVE, opened_at=utcnow())
                except IntegrityError as exc:
                    raise OutOfOrderError("Another position is already open", context=ctx, cause=exc) from exc

            await record_admin_action(
                self.session,
                election_id=ep.election_id,
                election_position_id=ep.id,
                actor_id=actor_id,
                action=AuditAction.reset_position,
                details={
                    "previous_status": ctx["status"],
                    "votes_deleted": votes_deleted,
                    "winners_deleted": winners_deleted,
                    "attendance_deleted": attendance_deleted,
                    "reopen": reopen,
                },
            )
            await self.session.refresh(ep)

        return ep
