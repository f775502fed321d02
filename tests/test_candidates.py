# tests/test_candidates.py
from __future__ import annotations

import pytest

from BOARDVOTE.db.models import Member
from BOARDVOTE.elections.errors import (
    DuplicateCandidateError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
)

from tests.helpers import cast_round, mark_present, split_ballots

pytestmark = pytest.mark.anyio


async def test_nomination_snapshots_member_identity(engine, election, positions, members, session):
    cand = await engine.candidates.nominate(election.id, positions[0].id, members[0].id)
    assert (cand.name, cand.email) == ("Member 01", "member01@example.org")

    member = await session.get(Member, members[0].id)
    member.full_name = "Renamed Later"
    member.email = "renamed@example.org"
    await session.commit()

    (stored,) = await engine.candidates.list_candidates(election.id, positions[0].id)
    await session.refresh(stored)
    assert (stored.name, stored.email) == ("Member 01", "member01@example.org")

    audit = await engine.projector.project(election.id)
    names = [c.candidate_name for c in audit.results.positions[0].candidates]
    assert names == ["Member 01"]


async def test_same_member_twice_for_a_position(engine, election, positions, members):
    await engine.candidates.nominate(election.id, positions[0].id, members[0].id)
    with pytest.raises(DuplicateCandidateError):
        await engine.candidates.nominate(election.id, positions[0].id, members[0].id)
    # other positions are fine
    await engine.candidates.nominate(election.id, positions[1].id, members[0].id)


async def test_position_must_belong_to_election(engine, election, members):
    with pytest.raises(NotFoundError):
        await engine.candidates.nominate(election.id, 999, members[0].id)


async def test_former_member_cannot_run(engine, election, positions, members):
    with pytest.raises(NotEligibleError):
        await engine.candidates.nominate(election.id, positions[0].id, members[-1].id)


async def test_list_keeps_nomination_order(engine, election, positions, members):
    for m in (members[4], members[1], members[7]):
        await engine.candidates.nominate(election.id, positions[0].id, m.id)
    listed = await engine.candidates.list_candidates(election.id, positions[0].id)
    assert [c.member_id for c in listed] == [members[4].id, members[1].id, members[7].id]


async def test_nominations_close_after_first_round(engine, election, positions, members):
    voters = [m.id for m in members[:10]]
    a = await engine.candidates.nominate(election.id, positions[0].id, members[0].id)
    b = await engine.candidates.nominate(election.id, positions[0].id, members[1].id)
    ep = await engine.orchestrator.advance(election.id)

    # still round one: late nomination accepted
    await engine.candidates.nominate(election.id, positions[0].id, members[2].id)

    await mark_present(engine, ep.id, voters)
    await cast_round(engine, ep.id, split_ballots(voters, (a.id, 5), (b.id, 5)))
    await engine.positions.close_scrutiny_round(ep.id)

    with pytest.raises(InvalidStateError):
        await engine.candidates.nominate(election.id, positions[0].id, members[3].id)
