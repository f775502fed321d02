"""
Sequential multi-round election engine.

``ElectionEngine`` bundles the components over one ``AsyncSession``; each
method call is its own short transaction.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.core.config import Settings, settings as default_settings
from BOARDVOTE.elections.attendance import AttendanceLedger
from BOARDVOTE.elections.audit import ResultsProjector, results_digest
from BOARDVOTE.elections.ballots import BallotStore
from BOARDVOTE.elections.candidates import CandidateRegistry
from BOARDVOTE.elections.errors import (
    AllPositionsCompletedError,
    AlreadyProcessedError,
    DuplicateCandidateError,
    DuplicateVoteError,
    ElectionAlreadyActiveError,
    ElectionError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    OutOfOrderError,
    TieUnresolvedError,
)
from BOARDVOTE.elections.majority import (
    DecidedByPlurality,
    Decision,
    Elected,
    NextScrutiny,
    TieUnresolved,
    majority_threshold,
    resolve,
)
from BOARDVOTE.elections.orchestrator import ElectionOrchestrator
from BOARDVOTE.elections.positions import PositionStateMachine, RoundOutcome
from BOARDVOTE.elections.scrutiny import ScrutinyCounter, TallyEntry, count_votes
from BOARDVOTE.elections.verification import ReportVerifier


class ElectionEngine:
    def __init__(self, session: AsyncSession, cfg: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = cfg or default_settings
        self.attendance = AttendanceLedger(session, self.settings)
        self.ballots = BallotStore(session, self.settings)
        self.candidates = CandidateRegistry(session, self.settings)
        self.counter = ScrutinyCounter(session)
        self.positions = PositionStateMachine(session, self.settings)
        self.orchestrator = ElectionOrchestrator(session, self.settings)
        self.projector = ResultsProjector(session, self.settings)
        self.verifier = ReportVerifier(session, self.settings)


__all__ = [
    "ElectionEngine",
    "AttendanceLedger",
    "BallotStore",
    "CandidateRegistry",
    "ScrutinyCounter",
    "PositionStateMachine",
    "ElectionOrchestrator",
    "ResultsProjector",
    "ReportVerifier",
    "RoundOutcome",
    "TallyEntry",
    "count_votes",
    "results_digest",
    "resolve",
    "majority_threshold",
    "Decision",
    "Elected",
    "NextScrutiny",
    "DecidedByPlurality",
    "TieUnresolved",
    "ElectionError",
    "NotFoundError",
    "InvalidStateError",
    "AllPositionsCompletedError",
    "DuplicateVoteError",
    "DuplicateCandidateError",
    "NotEligibleError",
    "OutOfOrderError",
    "ElectionAlreadyActiveError",
    "AlreadyProcessedError",
    "TieUnresolvedError",
]
