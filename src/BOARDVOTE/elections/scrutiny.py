"""
Scrutiny Counter: per-candidate tallies for one round of one position.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, NamedTuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.models import Candidate, ElectionPosition, Vote
from BOARDVOTE.elections.errors import NotFoundError

log = get_logger("elections.scrutiny")


class TallyEntry(NamedTuple):
    candidate_id: int
    vote_count: int


def count_votes(candidate_ids: Iterable[int], voted_candidate_ids: Iterable[int]) -> List[TallyEntry]:
    """
    Count ballots per candidate.

    ``candidate_ids`` must be in insertion order: it is the tie-break after the
    vote count, so equal counts keep nomination order. Every candidate appears,
    including those with zero votes; ballots for unknown candidates are ignored.
    """
    order = list(candidate_ids)
    counts = Counter(voted_candidate_ids)
    entries = [TallyEntry(cid, counts.get(cid, 0)) for cid in order]
    rank = {cid: i for i, cid in enumerate(order)}
    return sorted(entries, key=lambda e: (-e.vote_count, rank[e.candidate_id]))


class ScrutinyCounter:
    """Read-only; tallies whatever has been cast so far."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def candidate_ids(self, election_id: int, position_id: int) -> List[int]:
        res = await self.session.execute(
            sa.select(Candidate.id)
            .where(Candidate.election_id == election_id, Candidate.position_id == position_id)
            .order_by(Candidate.id)
        )
        return list(res.scalars().all())

    async def tally(self, election_position_id: int, scrutiny_round: int) -> List[TallyEntry]:
        ep = await self.session.get(ElectionPosition, election_position_id)
        if ep is None:
            raise NotFoundError(
                f"Election position {election_position_id} not found",
                context={"election_position_id": election_position_id},
            )
        return await self.tally_for(ep.election_id, ep.position_id, scrutiny_round)

    async def tally_for(self, election_id: int, position_id: int, scrutiny_round: int) -> List[TallyEntry]:
        candidates = await self.candidate_ids(election_id, position_id)
        res = await self.session.execute(
            sa.select(Vote.candidate_id).where(
                Vote.election_id == election_id,
                Vote.position_id == position_id,
                Vote.scrutiny_round == scrutiny_round,
            )
        )
        entries = count_votes(candidates, res.scalars().all())
        log.debug(
            "tally election=%s position=%s round=%s -> %s",
            election_id, position_id, scrutiny_round, entries,
        )
        return entries
