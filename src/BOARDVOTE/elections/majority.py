"""
Majority Resolver.

Pure decision logic: given a round's tally, the number of members present and
the round number, decide whether the position has a winner, needs another
round, or is stuck.

Round policy: every candidate re-contests every round. Rounds before the final
one require an absolute majority of the members present; the final round is
decided by plurality.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from BOARDVOTE.elections.scrutiny import TallyEntry

DEFAULT_FINAL_ROUND = 3


@dataclass(frozen=True)
class Elected:
    candidate_id: int
    kind: str = "elected"


@dataclass(frozen=True)
class NextScrutiny:
    kind: str = "next_scrutiny"


@dataclass(frozen=True)
class DecidedByPlurality:
    candidate_id: int
    kind: str = "decided_by_plurality"


@dataclass(frozen=True)
class TieUnresolved:
    candidate_ids: Tuple[int, ...] = ()
    kind: str = "tie_unresolved"


Decision = Union[Elected, NextScrutiny, DecidedByPlurality, TieUnresolved]


def majority_threshold(present_count: int) -> int:
    """Smallest vote count that is a strict absolute majority of ``present_count``."""
    if present_count < 0:
        raise ValueError("present_count must be >= 0")
    return present_count // 2 + 1


def _leaders(tally: Sequence[TallyEntry]) -> Tuple[int, Tuple[int, ...]]:
    """Top vote count and every candidate holding it, in tally order."""
    if not tally:
        return 0, ()
    top = max(entry.vote_count for entry in tally)
    return top, tuple(entry.candidate_id for entry in tally if entry.vote_count == top)


def resolve(
    tally: Sequence[TallyEntry],
    present_count: int,
    scrutiny_round: int,
    final_round: int = DEFAULT_FINAL_ROUND,
) -> Decision:
    """
    Decide the outcome of one closed scrutiny round.

    Args:
        tally: per-candidate counts for the round (any order)
        present_count: members marked present for the position
        scrutiny_round: 1-based round number being decided
        final_round: round at which plurality decides

    Returns:
        Elected / NextScrutiny / DecidedByPlurality / TieUnresolved
    """
    if scrutiny_round < 1:
        raise ValueError("scrutiny_round must be >= 1")
    if final_round < 1:
        raise ValueError("final_round must be >= 1")

    # cannot elect without voters
    if present_count <= 0:
        return TieUnresolved(tuple(entry.candidate_id for entry in tally))

    top, leaders = _leaders(tally)

    if scrutiny_round >= final_round:
        if top > 0 and len(leaders) == 1:
            return DecidedByPlurality(leaders[0])
        return TieUnresolved(leaders)

    if len(leaders) == 1 and top >= majority_threshold(present_count):
        return Elected(leaders[0])
    return NextScrutiny()
