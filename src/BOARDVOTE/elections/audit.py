"""
Audit/Results Projector.

Rebuilds the full, verifiable picture of an election from persisted rows
alone: tallies, winners, attendance, a vote timeline and per-round history.
It writes nothing, caches nothing and never reads the clock, so repeated
calls over unchanged rows serialize to identical bytes.
"""

from __future__ import annotations

import hashlib
from collections import defaultdict
from typing import Dict, List

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.core.config import Settings, settings as default_settings
from BOARDVOTE.db.models import (
    Candidate,
    Election,
    ElectionAttendance,
    ElectionPosition,
    ElectionWinner,
    Member,
    Position,
    PositionStatus,
    Vote,
)
from BOARDVOTE.elections.errors import NotFoundError
from BOARDVOTE.elections.majority import NextScrutiny, majority_threshold, resolve
from BOARDVOTE.elections.members import MemberDirectory
from BOARDVOTE.elections.scrutiny import count_votes
from BOARDVOTE.schemas.elections import (
    CandidateResult,
    ElectionAudit,
    ElectionMetadata,
    ElectionResults,
    PositionResult,
    PositionScrutinyHistory,
    ScrutinyCandidate,
    ScrutinyRound,
    VoterActivity,
    VoterAttendance,
)


# Read live from the member directory, not from election rows.
DIRECTORY_FIELDS = {
    "election_metadata": {"total_members"},
    "voter_attendance": {"__all__": {"voter_name", "voter_email"}},
    "vote_timeline": {"__all__": {"voter_name", "voter_email"}},
}


def results_digest(audit: ElectionAudit) -> str:
    """
    SHA-256 of the canonical JSON projection, over election-owned fields only.

    Member profile edits and new members leave the digest unchanged; edits to
    votes, winners, attendance or candidate snapshots change it.
    """
    payload = audit.model_dump_json(exclude=DIRECTORY_FIELDS)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResultsProjector:
    def __init__(self, session: AsyncSession, cfg: Settings | None = None) -> None:
        self.session = session
        self.settings = cfg or default_settings

    async def project(self, election_id: int) -> ElectionAudit:
        election = (
            await self.session.execute(
                sa.select(Election).where(Election.id == election_id).execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if election is None:
            raise NotFoundError(f"Election {election_id} not found", context={"election_id": election_id})

        eps = list(
            (
                await self.session.execute(
                    sa.select(ElectionPosition, Position)
                    .join(Position, Position.id == ElectionPosition.position_id)
                    .where(ElectionPosition.election_id == election_id)
                    .order_by(ElectionPosition.order_index)
                    .execution_options(populate_existing=True)
                )
            ).all()
        )

        candidates_by_position: Dict[int, List[Candidate]] = defaultdict(list)
        for cand in (
            await self.session.execute(
                sa.select(Candidate).where(Candidate.election_id == election_id).order_by(Candidate.id)
            )
        ).scalars():
            candidates_by_position[cand.position_id].append(cand)

        winners: Dict[int, ElectionWinner] = {
            w.position_id: w
            for w in (
                await self.session.execute(
                    sa.select(ElectionWinner)
                    .where(ElectionWinner.election_id == election_id)
                    .execution_options(populate_existing=True)
                )
            ).scalars()
        }

        present_by_ep: Dict[int, int] = {
            row.election_position_id: int(row.n)
            for row in (
                await self.session.execute(
                    sa.select(ElectionAttendance.election_position_id, sa.func.count().label("n"))
                    .where(
                        ElectionAttendance.election_id == election_id,
                        ElectionAttendance.is_present.is_(True),
                    )
                    .group_by(ElectionAttendance.election_position_id)
                )
            ).all()
        }

        vote_rows = (
            await self.session.execute(
                sa.select(
                    Vote.id,
                    Vote.voter_id,
                    Vote.candidate_id,
                    Vote.position_id,
                    Vote.scrutiny_round,
                    Vote.created_at,
                    Member.full_name,
                    Member.email,
                )
                .join(Member, Member.id == Vote.voter_id)
                .where(Vote.election_id == election_id)
                .order_by(Vote.created_at, Vote.id)
            )
        ).all()

        # (position_id, round) -> voted candidate ids
        ballots: Dict[tuple, List[int]] = defaultdict(list)
        for row in vote_rows:
            ballots[(row.position_id, row.scrutiny_round)].append(row.candidate_id)

        final_round = self.settings.FINAL_SCRUTINY_ROUND
        position_results: List[PositionResult] = []
        history: List[PositionScrutinyHistory] = []
        names: Dict[int, str] = {}
        active_ep = None

        for ep, position in eps:
            names[position.id] = position.name
            if ep.status == PositionStatus.active.value:
                active_ep = ep
            cands = candidates_by_position.get(ep.position_id, [])
            by_id = {c.id: c for c in cands}
            winner = winners.get(ep.position_id)
            present = present_by_ep.get(ep.id, 0)
            shown_round = winner.won_at_scrutiny if winner else ep.current_scrutiny

            tally = count_votes(by_id, ballots.get((ep.position_id, shown_round), []))
            needs_next = (
                ep.status == PositionStatus.active.value
                and winner is None
                and isinstance(resolve(tally, present, ep.current_scrutiny, final_round), NextScrutiny)
            )

            position_results.append(
                PositionResult(
                    position_id=position.id,
                    position_name=position.name,
                    election_position_id=ep.id,
                    status=ep.status,
                    current_scrutiny=ep.current_scrutiny,
                    order_index=ep.order_index,
                    total_voters=present,
                    majority_threshold=majority_threshold(present),
                    needs_next_scrutiny=needs_next,
                    winner_id=winner.candidate_id if winner else None,
                    winner_scrutiny=winner.won_at_scrutiny if winner else None,
                    decided_by=winner.decided_by if winner else None,
                    candidates=[
                        CandidateResult(
                            candidate_id=entry.candidate_id,
                            candidate_name=by_id[entry.candidate_id].name,
                            candidate_email=by_id[entry.candidate_id].email,
                            vote_count=entry.vote_count,
                            is_elected=bool(winner and winner.candidate_id == entry.candidate_id),
                            elected_in_scrutiny=(
                                winner.won_at_scrutiny
                                if winner and winner.candidate_id == entry.candidate_id
                                else None
                            ),
                        )
                        for entry in tally
                    ],
                )
            )

            if ep.status == PositionStatus.pending.value:
                continue
            rounds: List[ScrutinyRound] = []
            for rnd in range(1, shown_round + 1):
                round_tally = count_votes(by_id, ballots.get((ep.position_id, rnd), []))
                rounds.append(
                    ScrutinyRound(
                        round=rnd,
                        candidates=[
                            ScrutinyCandidate(
                                candidate_id=entry.candidate_id,
                                candidate_name=by_id[entry.candidate_id].name,
                                candidate_email=by_id[entry.candidate_id].email,
                                vote_count=entry.vote_count,
                                advanced_to_next=rnd < shown_round,
                                is_elected=bool(
                                    winner
                                    and rnd == winner.won_at_scrutiny
                                    and winner.candidate_id == entry.candidate_id
                                ),
                            )
                            for entry in round_tally
                        ],
                    )
                )
            history.append(
                PositionScrutinyHistory(position_id=position.id, position_name=position.name, scrutinies=rounds)
            )

        candidate_names = {c.id: c.name for cs in candidates_by_position.values() for c in cs}
        timeline = [
            VoterActivity(
                vote_id=row.id,
                voter_id=row.voter_id,
                voter_name=row.full_name,
                voter_email=row.email,
                position_id=row.position_id,
                position_name=names.get(row.position_id, ""),
                candidate_id=row.candidate_id,
                candidate_name=candidate_names.get(row.candidate_id, ""),
                scrutiny_round=row.scrutiny_round,
                voted_at=row.created_at,
            )
            for row in vote_rows
        ]

        attendance: Dict[int, VoterAttendance] = {}
        for row in vote_rows:
            seen = attendance.get(row.voter_id)
            if seen is None:
                attendance[row.voter_id] = VoterAttendance(
                    voter_id=row.voter_id,
                    voter_name=row.full_name,
                    voter_email=row.email,
                    first_vote_at=row.created_at,
                    total_votes=1,
                )
            else:
                seen.total_votes += 1

        results = ElectionResults(
            election_id=election.id,
            election_name=election.name,
            is_active=election.is_active,
            current_scrutiny=active_ep.current_scrutiny if active_ep is not None else 1,
            present_count=present_by_ep.get(active_ep.id, 0) if active_ep is not None else 0,
            created_at=election.created_at,
            closed_at=election.closed_at,
            positions=position_results,
        )
        metadata = ElectionMetadata(
            created_at=election.created_at,
            closed_at=election.closed_at,
            total_positions=len(eps),
            completed_positions=sum(1 for ep, _ in eps if ep.status == PositionStatus.completed.value),
            total_members=await MemberDirectory(self.session).count_members(),
        )
        return ElectionAudit(
            results=results,
            election_metadata=metadata,
            voter_attendance=list(attendance.values()),
            vote_timeline=timeline,
            scrutiny_history=history,
        )
