"""
Ballot Store: the only writer of ``votes`` rows.
"""

from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.models import (
    AuditAction,
    Candidate,
    PositionStatus,
    Vote,
    VOTE_UNIQUE_CONSTRAINT,
)
from BOARDVOTE.elections.attendance import AttendanceLedger
from BOARDVOTE.elections.audit_log import record_admin_action
from BOARDVOTE.elections.base import EngineComponent, is_unique_violation
from BOARDVOTE.elections.errors import (
    DuplicateVoteError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
)

log = get_logger("elections.ballots")


class BallotStore(EngineComponent):

    async def cast_vote(self, election_position_id: int, voter_id: int, candidate_id: int) -> int:
        """
        Record one ballot for the position's current scrutiny round.

        Active/eligibility checks, the round read and the insert share one
        transaction; the position row is share-locked so the round cannot
        advance in between. A second ballot from the same voter in the same
        round is rejected by the unique constraint, never overwritten.

        Returns:
            id of the new vote
        """
        ctx = {
            "election_position_id": election_position_id,
            "voter_id": voter_id,
            "candidate_id": candidate_id,
        }
        try:
            async with self.transaction():
                ep = await self.load_position(election_position_id, lock="share")
                if ep.status != PositionStatus.active.value:
                    raise InvalidStateError(
                        f"Voting is closed for this position (status={ep.status})",
                        context={**ctx, "status": ep.status},
                    )

                if not await AttendanceLedger(self.session, self.settings).is_present(ep.id, voter_id):
                    raise NotEligibleError("Voter is not marked present for this position", context=ctx)

                candidate = await self.session.get(Candidate, candidate_id)
                if (
                    candidate is None
                    or candidate.election_id != ep.election_id
                    or candidate.position_id != ep.position_id
                ):
                    raise NotEligibleError("Candidate does not run for this position", context=ctx)

                # a failed flush expires ep
                scrutiny_round = ep.current_scrutiny
                vote = Vote(
                    voter_id=voter_id,
                    candidate_id=candidate_id,
                    election_id=ep.election_id,
                    position_id=ep.position_id,
                    election_position_id=ep.id,
                    scrutiny_round=scrutiny_round,
                )
                self.session.add(vote)
                try:
                    await self.session.flush()
                except IntegrityError as exc:
                    if is_unique_violation(exc, VOTE_UNIQUE_CONSTRAINT):
                        raise DuplicateVoteError(
                            "Voter already cast a ballot in this scrutiny round",
                            context={**ctx, "scrutiny_round": scrutiny_round},
                            cause=exc,
                        ) from exc
                    raise
                vote_id = vote.id
        except (DuplicateVoteError, NotEligibleError, InvalidStateError) as exc:
            log.info("ballot rejected: %s", exc)
            raise

        log.info(
            "ballot accepted vote=%s election_position=%s round=%s",
            vote_id, election_position_id, scrutiny_round,
        )
        return vote_id

    async def has_voted(self, election_position_id: int, voter_id: int) -> bool:
        """True when the voter already has a ballot in the position's current round."""
        ep = await self.load_position(election_position_id)
        res = await self.session.execute(
            sa.select(Vote.id).where(
                Vote.voter_id == voter_id,
                Vote.election_id == ep.election_id,
                Vote.position_id == ep.position_id,
                Vote.scrutiny_round == ep.current_scrutiny,
            )
        )
        return res.first() is not None

    async def void_vote(self, vote_id: int, actor_id: Optional[int] = None, reason: Optional[str] = None) -> None:
        """
        Administrative void of a mistaken ballot.

        Only for a ballot of the current round of an active position; the
        deletion and its audit entry are written in the same transaction.
        """
        async with self.transaction():
            vote = await self.session.get(Vote, vote_id)
            if vote is None:
                raise NotFoundError(f"Vote {vote_id} not found", context={"vote_id": vote_id})

            ep = await self.load_position(vote.election_position_id, lock="update")
            if ep.status != PositionStatus.active.value or vote.scrutiny_round != ep.current_scrutiny:
                raise InvalidStateError(
                    "Only ballots of the open scrutiny round can be voided",
                    context={
                        "vote_id": vote_id,
                        "status": ep.status,
                        "vote_round": vote.scrutiny_round,
                        "current_scrutiny": ep.current_scrutiny,
                    },
                )

            details = {
                "vote_id": vote.id,
                "voter_id": vote.voter_id,
                "candidate_id": vote.candidate_id,
                "scrutiny_round": vote.scrutiny_round,
                "reason": reason,
            }
            await self.session.delete(vote)
            await record_admin_action(
                self.session,
                election_id=ep.election_id,
                election_position_id=ep.id,
                actor_id=actor_id,
                action=AuditAction.void_vote,
                details=details,
            )
