# src/BOARDVOTE/schemas/elections.py
from __future__ import annotations

from typing import Optional, List
from datetime import datetime
from pydantic import Field

from BOARDVOTE.schemas.base import APIModel


# -----------------------------
# Requests
# -----------------------------
class ElectionCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    position_ids: Optional[List[int]] = Field(None, description="Processing order; defaults to catalog order")


class NominationCreate(APIModel):
    position_id: int
    member_id: int


class AttendanceMark(APIModel):
    member_id: int
    present: bool = True


class BallotCreate(APIModel):
    voter_id: int = Field(..., description="Verified identity of the acting member")
    candidate_id: int


class CloseRound(APIModel):
    expected_round: Optional[int] = Field(None, ge=1)


class ForceWinner(APIModel):
    candidate_id: int
    actor_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)


class ResetPosition(APIModel):
    actor_id: Optional[int] = None
    clear_attendance: bool = False
    reopen: bool = False


class VoidVote(APIModel):
    actor_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=1000)


class VerificationCreate(APIModel):
    president_name: Optional[str] = Field(None, max_length=255)


# -----------------------------
# Read models
# -----------------------------
class ElectionOut(APIModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime
    closed_at: Optional[datetime] = None


class ElectionPositionOut(APIModel):
    id: int
    election_id: int
    position_id: int
    order_index: int
    status: str
    current_scrutiny: int
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class CandidateOut(APIModel):
    id: int
    election_id: int
    position_id: int
    member_id: int
    name: str
    email: str


class VoteReceipt(APIModel):
    vote_id: int


class WinnerOut(APIModel):
    id: int
    election_id: int
    position_id: int
    candidate_id: int
    won_at_scrutiny: int
    decided_by: str


class AdminActionOut(APIModel):
    id: int
    election_id: int
    election_position_id: Optional[int] = None
    actor_id: Optional[int] = None
    action: str
    details: Optional[dict] = None
    occurred_at: datetime


class TallyEntryOut(APIModel):
    candidate_id: int
    vote_count: int


class RoundOutcomeOut(APIModel):
    election_position_id: int
    scrutiny_round: int
    present_count: int
    majority_threshold: int
    tally: List[TallyEntryOut]
    decision: str
    status: str
    next_scrutiny: Optional[int] = None
    winner_candidate_id: Optional[int] = None


# -----------------------------
# Results / audit projection
# -----------------------------
class CandidateResult(APIModel):
    candidate_id: int
    candidate_name: str
    candidate_email: str
    vote_count: int
    is_elected: bool
    elected_in_scrutiny: Optional[int] = None


class PositionResult(APIModel):
    position_id: int
    position_name: str
    election_position_id: int
    status: str
    current_scrutiny: int
    order_index: int
    total_voters: int
    majority_threshold: int
    needs_next_scrutiny: bool
    winner_id: Optional[int] = None
    winner_scrutiny: Optional[int] = None
    decided_by: Optional[str] = None
    candidates: List[CandidateResult]


class ElectionResults(APIModel):
    election_id: int
    election_name: str
    is_active: bool
    current_scrutiny: int
    present_count: int
    created_at: datetime
    closed_at: Optional[datetime] = None
    positions: List[PositionResult]


class ElectionMetadata(APIModel):
    created_at: datetime
    closed_at: Optional[datetime] = None
    total_positions: int
    completed_positions: int
    total_members: int


class VoterAttendance(APIModel):
    voter_id: int
    voter_name: str
    voter_email: str
    first_vote_at: datetime
    total_votes: int


class VoterActivity(APIModel):
    vote_id: int
    voter_id: int
    voter_name: str
    voter_email: str
    position_id: int
    position_name: str
    candidate_id: int
    candidate_name: str
    scrutiny_round: int
    voted_at: datetime


class ScrutinyCandidate(APIModel):
    candidate_id: int
    candidate_name: str
    candidate_email: str
    vote_count: int
    advanced_to_next: bool
    is_elected: bool


class ScrutinyRound(APIModel):
    round: int
    candidates: List[ScrutinyCandidate]


class PositionScrutinyHistory(APIModel):
    position_id: int
    position_name: str
    scrutinies: List[ScrutinyRound]


class ElectionAudit(APIModel):
    results: ElectionResults
    election_metadata: ElectionMetadata
    voter_attendance: List[VoterAttendance]
    vote_timeline: List[VoterActivity]
    scrutiny_history: List[PositionScrutinyHistory]


class VerificationOut(APIModel):
    election_id: int
    election_name: str
    verification_hash: str
    president_name: Optional[str] = None
    issued_at: datetime
    results_digest: str
    current_digest: Optional[str] = None
    results_match: Optional[bool] = None
