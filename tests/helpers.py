# tests/helpers.py
from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import sqlalchemy as sa

from BOARDVOTE.db.models import Candidate, ElectionPosition
from BOARDVOTE.elections import ElectionEngine


async def election_positions(engine: ElectionEngine, election_id: int) -> list[ElectionPosition]:
    res = await engine.session.execute(
        sa.select(ElectionPosition)
        .where(ElectionPosition.election_id == election_id)
        .order_by(ElectionPosition.order_index)
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def nominate_all(
    engine: ElectionEngine, election_id: int, position_id: int, member_ids: Iterable[int]
) -> list[Candidate]:
    return [await engine.candidates.nominate(election_id, position_id, m) for m in member_ids]


def detach(engine: ElectionEngine, *rows):
    """Expunge rows from the engine session so a later rollback cannot expire them."""
    for row in rows:
        engine.session.expunge(row)
    return rows


async def mark_present(engine: ElectionEngine, ep_id: int, member_ids: Iterable[int]) -> None:
    for m in member_ids:
        await engine.attendance.mark_present(ep_id, m)


async def cast_round(engine: ElectionEngine, ep_id: int, ballots: Mapping[int, int]) -> list[int]:
    """ballots: voter_id -> candidate_id"""
    return [await engine.ballots.cast_vote(ep_id, voter, cand) for voter, cand in ballots.items()]


def split_ballots(voters: Sequence[int], *groups: tuple[int, int]) -> dict[int, int]:
    """
    split_ballots(voters, (cand_a, 6), (cand_b, 4)) -> first six voters pick A, next four pick B.
    """
    out: dict[int, int] = {}
    it = iter(voters)
    for candidate_id, count in groups:
        for _ in range(count):
            out[next(it)] = candidate_id
    return out


async def open_with_two_candidates(
    engine: ElectionEngine,
    election_id: int,
    voters: Sequence[int],
    candidate_members: tuple[int, int],
) -> tuple[ElectionPosition, Candidate, Candidate]:
    """Nominate two candidates for the next pending position, open it and mark every voter present."""
    pending = [ep for ep in await election_positions(engine, election_id) if ep.status == "pending"]
    a, b = await nominate_all(engine, election_id, pending[0].position_id, candidate_members)
    ep = await engine.orchestrator.advance(election_id)
    await mark_present(engine, ep.id, voters)
    return detach(engine, ep, a, b)
