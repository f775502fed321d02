# tests/test_attendance.py
from __future__ import annotations

import pytest

from BOARDVOTE.elections import ElectionEngine
from BOARDVOTE.elections.errors import InvalidStateError, NotEligibleError, NotFoundError

from tests.helpers import detach, election_positions, mark_present

pytestmark = pytest.mark.anyio


@pytest.fixture
async def open_ep(engine, election):
    (ep,) = detach(engine, await engine.orchestrator.advance(election.id))
    return ep


async def test_mark_present_is_idempotent(engine, open_ep, members):
    await engine.attendance.mark_present(open_ep.id, members[0].id)
    await engine.attendance.mark_present(open_ep.id, members[0].id)
    assert await engine.attendance.present_count(open_ep.id) == 1
    assert await engine.attendance.is_present(open_ep.id, members[0].id)


async def test_unmark(engine, open_ep, members):
    await mark_present(engine, open_ep.id, [m.id for m in members[:3]])
    await engine.attendance.mark_present(open_ep.id, members[1].id, present=False)

    assert await engine.attendance.present_count(open_ep.id) == 2
    assert await engine.attendance.present_members(open_ep.id) == [members[0].id, members[2].id]
    assert not await engine.attendance.is_present(open_ep.id, members[1].id)


async def test_attendance_only_while_active(engine, election, open_ep, members):
    pending = (await election_positions(engine, election.id))[1]
    with pytest.raises(InvalidStateError):
        await engine.attendance.mark_present(pending.id, members[0].id)


async def test_former_member_cannot_be_marked(engine, open_ep, members):
    with pytest.raises(NotEligibleError):
        await engine.attendance.mark_present(open_ep.id, members[-1].id)


async def test_unknown_member(engine, open_ep):
    with pytest.raises(NotFoundError):
        await engine.attendance.mark_present(open_ep.id, 777)


async def test_present_count_is_per_position(engine, election, open_ep, members, session_factory):
    await mark_present(engine, open_ep.id, [m.id for m in members[:4]])
    second = (await election_positions(engine, election.id))[1]
    assert await engine.attendance.present_count(second.id) == 0

    # another session sees the committed marks
    async with session_factory() as other:
        assert await ElectionEngine(other).attendance.present_count(open_ep.id) == 4


async def test_no_carry_over_when_disabled(session, test_settings, election, members):
    cfg = test_settings.model_copy(update={"CARRY_OVER_ATTENDANCE": False})
    engine = ElectionEngine(session, cfg)
    ep = await engine.orchestrator.advance(election.id)
    a = await engine.candidates.nominate(election.id, ep.position_id, members[0].id)
    await mark_present(engine, ep.id, [m.id for m in members[:10]])
    for voter in [m.id for m in members[:7]]:
        await engine.ballots.cast_vote(ep.id, voter, a.id)
    await engine.positions.close_scrutiny_round(ep.id)

    nxt = await engine.orchestrator.advance(election.id)
    assert await engine.attendance.present_count(nxt.id) == 0
