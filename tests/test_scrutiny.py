# tests/test_scrutiny.py
from __future__ import annotations

import pytest

from BOARDVOTE.elections import TallyEntry, count_votes
from BOARDVOTE.elections.errors import NotFoundError

from tests.helpers import cast_round, open_with_two_candidates, split_ballots

pytestmark = pytest.mark.anyio


def test_count_votes_sorts_by_count_then_nomination_order():
    assert count_votes([7, 8, 9], [9, 8, 9, 8]) == [TallyEntry(8, 2), TallyEntry(9, 2), TallyEntry(7, 0)]


def test_count_votes_keeps_candidates_without_votes():
    assert count_votes([1, 2], []) == [TallyEntry(1, 0), TallyEntry(2, 0)]


def test_count_votes_ignores_unknown_candidates():
    assert count_votes([1], [1, 5, 5]) == [TallyEntry(1, 1)]


async def test_tally_counts_only_the_requested_round(engine, election, members):
    voters = [m.id for m in members[:10]]
    ep, a, b = await open_with_two_candidates(engine, election.id, voters, (members[0].id, members[1].id))
    await cast_round(engine, ep.id, split_ballots(voters, (a.id, 5), (b.id, 5)))
    await engine.positions.close_scrutiny_round(ep.id)
    await cast_round(engine, ep.id, split_ballots(voters[:3], (b.id, 3)))

    assert await engine.counter.tally(ep.id, 1) == [TallyEntry(a.id, 5), TallyEntry(b.id, 5)]
    assert await engine.counter.tally(ep.id, 2) == [TallyEntry(b.id, 3), TallyEntry(a.id, 0)]
    assert await engine.counter.tally(ep.id, 3) == [TallyEntry(a.id, 0), TallyEntry(b.id, 0)]


async def test_tally_unknown_position(engine):
    with pytest.raises(NotFoundError):
        await engine.counter.tally(999, 1)
