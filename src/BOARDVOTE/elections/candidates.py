"""
Candidate Registry: nominations with a name/email snapshot of the member.
"""

from __future__ import annotations

from typing import List

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.models import Candidate, ElectionPosition, PositionStatus
from BOARDVOTE.elections.base import EngineComponent, is_unique_violation
from BOARDVOTE.elections.errors import DuplicateCandidateError, InvalidStateError, NotFoundError
from BOARDVOTE.elections.members import MemberDirectory

log = get_logger("elections.candidates")


class CandidateRegistry(EngineComponent):

    async def nominate(self, election_id: int, position_id: int, member_id: int) -> Candidate:
        """
        Nominate a member for a position.

        Accepted while the position is pending, or active but still in its
        first round. The member's name and email are copied onto the candidate.
        """
        ctx = {"election_id": election_id, "position_id": position_id, "member_id": member_id}
        async with self.transaction():
            election = await self.load_election(election_id)
            if election.is_closed:
                raise InvalidStateError("Election is closed", context=ctx)

            res = await self.session.execute(
                sa.select(ElectionPosition)
                .where(
                    ElectionPosition.election_id == election_id,
                    ElectionPosition.position_id == position_id,
                )
                .execution_options(populate_existing=True)
            )
            ep = res.scalar_one_or_none()
            if ep is None:
                raise NotFoundError("Position is not part of this election", context=ctx)
            if ep.status == PositionStatus.completed.value or ep.current_scrutiny > 1:
                raise InvalidStateError(
                    "Nominations are closed for this position",
                    context={**ctx, "status": ep.status, "current_scrutiny": ep.current_scrutiny},
                )

            member = await MemberDirectory(self.session).require_member(member_id)
            candidate = Candidate(
                election_id=election_id,
                position_id=position_id,
                member_id=member_id,
                name=member.full_name,
                email=member.email,
            )
            self.session.add(candidate)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                if is_unique_violation(exc, "uq_candidates_member_position_election"):
                    raise DuplicateCandidateError(
                        "Member is already a candidate for this position", context=ctx, cause=exc
                    ) from exc
                raise

        log.info("nominated candidate=%s %s", candidate.id, ctx)
        return candidate

    async def list_candidates(self, election_id: int, position_id: int) -> List[Candidate]:
        res = await self.session.execute(
            sa.select(Candidate)
            .where(Candidate.election_id == election_id, Candidate.position_id == position_id)
            .order_by(Candidate.id)
        )
        return list(res.scalars().all())
