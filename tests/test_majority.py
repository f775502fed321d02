# tests/test_majority.py
from __future__ import annotations

import pytest

from BOARDVOTE.elections.majority import (
    DecidedByPlurality,
    Elected,
    NextScrutiny,
    TieUnresolved,
    majority_threshold,
    resolve,
)
from BOARDVOTE.elections.scrutiny import TallyEntry

A, B, C = 101, 102, 103


def tally(*pairs: tuple[int, int]) -> list[TallyEntry]:
    return [TallyEntry(c, n) for c, n in pairs]


@pytest.mark.parametrize(
    "present,expected",
    [(0, 1), (1, 1), (2, 2), (3, 2), (9, 5), (10, 6), (11, 6)],
)
def test_majority_threshold(present, expected):
    assert majority_threshold(present) == expected


def test_majority_threshold_rejects_negative():
    with pytest.raises(ValueError):
        majority_threshold(-1)


def test_clear_majority_in_first_round_elects():
    assert resolve(tally((A, 6), (B, 4)), present_count=10, scrutiny_round=1) == Elected(A)


def test_exactly_half_is_not_a_majority():
    assert resolve(tally((A, 5), (B, 4)), present_count=10, scrutiny_round=1) == NextScrutiny()


def test_majority_is_measured_against_present_not_votes_cast():
    # 4 of 5 ballots cast, but 10 members present
    assert resolve(tally((A, 4), (B, 1)), present_count=10, scrutiny_round=2) == NextScrutiny()


def test_even_split_goes_to_next_round_then_plurality_decides():
    assert resolve(tally((A, 5), (B, 5)), 10, 1) == NextScrutiny()
    assert resolve(tally((A, 5), (B, 5)), 10, 2) == NextScrutiny()
    decision = resolve(tally((A, 6), (B, 4)), 10, 3)
    assert decision == DecidedByPlurality(A)
    assert decision.kind == "decided_by_plurality"


def test_final_round_plurality_without_majority():
    assert resolve(tally((A, 4), (B, 3), (C, 3)), 10, 3) == DecidedByPlurality(A)


def test_final_round_tie_is_unresolved():
    decision = resolve(tally((A, 5), (B, 5)), 10, 3)
    assert isinstance(decision, TieUnresolved)
    assert decision.candidate_ids == (A, B)


def test_final_round_tie_lists_only_leaders():
    decision = resolve(tally((A, 4), (B, 4), (C, 2)), 10, 3)
    assert decision == TieUnresolved((A, B))


def test_final_round_without_any_vote_is_unresolved():
    assert isinstance(resolve(tally((A, 0), (B, 0)), 10, 3), TieUnresolved)


def test_nobody_present_never_elects():
    assert isinstance(resolve(tally((A, 0)), 0, 1), TieUnresolved)
    assert isinstance(resolve(tally((A, 0)), 0, 3), TieUnresolved)


def test_unopposed_candidate_still_needs_a_majority():
    assert resolve(tally((A, 6)), 10, 1) == Elected(A)
    assert resolve(tally((A, 5)), 10, 1) == NextScrutiny()


def test_custom_final_round():
    assert resolve(tally((A, 3), (B, 2)), 10, 2, final_round=2) == DecidedByPlurality(A)


def test_tally_order_does_not_matter():
    assert resolve(tally((B, 4), (A, 6)), 10, 1) == Elected(A)


@pytest.mark.parametrize("bad_round", [0, -1])
def test_round_numbers_start_at_one(bad_round):
    with pytest.raises(ValueError):
        resolve(tally((A, 1)), 1, bad_round)
