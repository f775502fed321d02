# tests/test_orchestrator.py
from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from BOARDVOTE.db.models import Election
from BOARDVOTE.elections.errors import (
    AllPositionsCompletedError,
    ElectionAlreadyActiveError,
    InvalidStateError,
    NotFoundError,
    OutOfOrderError,
)

from tests.helpers import cast_round, election_positions, open_with_two_candidates, split_ballots

pytestmark = pytest.mark.anyio


async def test_ensure_positions_is_idempotent(engine):
    first = await engine.orchestrator.ensure_positions()
    again = await engine.orchestrator.ensure_positions()
    assert [p.name for p in first] == engine.settings.DEFAULT_POSITIONS
    assert [p.id for p in first] == [p.id for p in again]


async def test_open_election_creates_pending_positions_in_order(engine, positions, members):
    order = [positions[2].id, positions[0].id, positions[1].id]
    election = await engine.orchestrator.open_election("AGO 2026", order)

    assert election.is_active
    assert election.closed_at is None
    eps = await election_positions(engine, election.id)
    assert [ep.position_id for ep in eps] == order
    assert [ep.order_index for ep in eps] == [0, 1, 2]
    assert {ep.status for ep in eps} == {"pending"}
    assert await engine.orchestrator.current_position(election.id) is None


async def test_open_election_defaults_to_catalog_order(engine, positions):
    election = await engine.orchestrator.open_election("AGO 2026")
    eps = await election_positions(engine, election.id)
    assert [ep.position_id for ep in eps] == sorted(p.id for p in positions)


async def test_only_one_active_election(engine, election):
    with pytest.raises(ElectionAlreadyActiveError) as info:
        await engine.orchestrator.open_election("Second")
    assert isinstance(info.value, OutOfOrderError)
    assert info.value.context["active_election_id"] == election.id
    assert (await engine.orchestrator.active_election()).id == election.id


async def test_storage_allows_one_active_election(election, session):
    session.add(Election(name="Sneaky", is_active=True))
    with pytest.raises(IntegrityError):
        await session.flush()
    await session.rollback()


async def test_open_election_rejects_bad_position_lists(engine, positions):
    with pytest.raises(InvalidStateError):
        await engine.orchestrator.open_election("Dup", [positions[0].id, positions[0].id])
    with pytest.raises(NotFoundError):
        await engine.orchestrator.open_election("Unknown", [positions[0].id, 999])
    with pytest.raises(InvalidStateError):
        await engine.orchestrator.open_election("Empty", [])


async def test_advance_walks_positions_then_closes(engine, election, members):
    voters = [m.id for m in members[:10]]
    opened = []
    for first, second in ((0, 1), (2, 3), (4, 5)):
        ep, a, b = await open_with_two_candidates(engine, election.id, voters, (members[first].id, members[second].id))
        opened.append(ep.order_index)
        assert (await engine.orchestrator.current_position(election.id)).id == ep.id
        await cast_round(engine, ep.id, split_ballots(voters, (a.id, 7), (b.id, 3)))
        await engine.positions.close_scrutiny_round(ep.id)
    assert opened == [0, 1, 2]

    with pytest.raises(AllPositionsCompletedError):
        await engine.orchestrator.advance(election.id)

    closed = await engine.orchestrator.load_election(election.id)
    assert not closed.is_active
    assert closed.closed_at is not None
    first_close = closed.closed_at

    # closing is not repeated
    with pytest.raises(AllPositionsCompletedError):
        await engine.orchestrator.advance(election.id)
    assert (await engine.orchestrator.load_election(election.id)).closed_at == first_close

    # a new election may start now
    nxt = await engine.orchestrator.open_election("Next term")
    assert nxt.id != election.id


async def test_advance_refuses_while_position_active(engine, election, members):
    voters = [m.id for m in members[:10]]
    await open_with_two_candidates(engine, election.id, voters, (members[0].id, members[1].id))
    with pytest.raises(OutOfOrderError):
        await engine.orchestrator.advance(election.id)


async def test_advance_unknown_election(engine):
    with pytest.raises(NotFoundError):
        await engine.orchestrator.advance(404)


async def test_closed_election_cannot_open_positions(engine, election, positions, members):
    voters = [m.id for m in members[:10]]
    for first, second in ((0, 1), (2, 3), (4, 5)):
        ep, a, b = await open_with_two_candidates(engine, election.id, voters, (members[first].id, members[second].id))
        await cast_round(engine, ep.id, split_ballots(voters, (a.id, 6), (b.id, 4)))
        await engine.positions.close_scrutiny_round(ep.id)
    with pytest.raises(AllPositionsCompletedError):
        await engine.orchestrator.advance(election.id)

    with pytest.raises(InvalidStateError):
        await engine.positions.open_position(election.id, positions[0].id)
    with pytest.raises(InvalidStateError):
        await engine.candidates.nominate(election.id, positions[0].id, members[7].id)
