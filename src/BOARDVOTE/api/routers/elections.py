# src/BOARDVOTE/api/routers/elections.py
from __future__ import annotations

from typing import AsyncGenerator, List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.elections import ElectionEngine
from BOARDVOTE.schemas.elections import (
    AdminActionOut,
    AttendanceMark,
    BallotCreate,
    CandidateOut,
    CloseRound,
    ElectionAudit,
    ElectionCreate,
    ElectionOut,
    ElectionPositionOut,
    ElectionResults,
    ForceWinner,
    NominationCreate,
    ResetPosition,
    RoundOutcomeOut,
    VerificationCreate,
    VerificationOut,
    VoidVote,
    VoteReceipt,
    WinnerOut,
)

router = APIRouter(prefix="/elections", tags=["elections"])


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Session from the app-scoped sessionmaker built in the lifespan handler."""
    async with request.app.state.async_sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_engine(request: Request, session: AsyncSession = Depends(get_session)) -> ElectionEngine:
    return ElectionEngine(session, getattr(request.app.state, "settings", None))


# ---------------------------------------------------------------------------
# Elections
# ---------------------------------------------------------------------------
@router.post("", response_model=ElectionOut, status_code=status.HTTP_201_CREATED)
async def open_election(payload: ElectionCreate, engine: ElectionEngine = Depends(get_engine)) -> ElectionOut:
    """Create and activate an election. 409 when another election is still active."""
    election = await engine.orchestrator.open_election(payload.name, payload.position_ids)
    return ElectionOut.model_validate(election)


@router.post("/{election_id}/advance", response_model=ElectionPositionOut)
async def advance(election_id: int, engine: ElectionEngine = Depends(get_engine)) -> ElectionPositionOut:
    """
    Open the next pending position.
    Returns 409 `all_positions_completed` once the election has been closed.
    """
    ep = await engine.orchestrator.advance(election_id)
    return ElectionPositionOut.model_validate(ep)


@router.get("/{election_id}/results", response_model=ElectionResults)
async def results(election_id: int, engine: ElectionEngine = Depends(get_engine)) -> ElectionResults:
    return (await engine.projector.project(election_id)).results


@router.get("/{election_id}/audit", response_model=ElectionAudit)
async def audit(election_id: int, engine: ElectionEngine = Depends(get_engine)) -> ElectionAudit:
    return await engine.projector.project(election_id)


@router.get("/{election_id}/admin-actions", response_model=List[AdminActionOut])
async def admin_actions(election_id: int, engine: ElectionEngine = Depends(get_engine)) -> List[AdminActionOut]:
    return [AdminActionOut.model_validate(a) for a in await engine.orchestrator.admin_actions(election_id)]


@router.post("/{election_id}/verifications", response_model=VerificationOut, status_code=status.HTTP_201_CREATED)
async def issue_verification(
    election_id: int,
    payload: VerificationCreate,
    engine: ElectionEngine = Depends(get_engine),
) -> VerificationOut:
    return await engine.verifier.issue_verification(election_id, payload.president_name)


@router.get("/verifications/{verification_hash}", response_model=VerificationOut)
async def verify(verification_hash: str, engine: ElectionEngine = Depends(get_engine)) -> VerificationOut:
    return await engine.verifier.verify(verification_hash)


@router.post("/{election_id}/candidates", response_model=CandidateOut, status_code=status.HTTP_201_CREATED)
async def nominate(
    election_id: int,
    payload: NominationCreate,
    engine: ElectionEngine = Depends(get_engine),
) -> CandidateOut:
    candidate = await engine.candidates.nominate(election_id, payload.position_id, payload.member_id)
    return CandidateOut.model_validate(candidate)


@router.post("/{election_id}/positions/{position_id}/open", response_model=ElectionPositionOut)
async def open_position(
    election_id: int,
    position_id: int,
    engine: ElectionEngine = Depends(get_engine),
) -> ElectionPositionOut:
    ep = await engine.positions.open_position(election_id, position_id)
    return ElectionPositionOut.model_validate(ep)


# ---------------------------------------------------------------------------
# Election positions
# ---------------------------------------------------------------------------
@router.put("/positions/{election_position_id}/attendance", status_code=status.HTTP_204_NO_CONTENT)
async def mark_attendance(
    election_position_id: int,
    payload: AttendanceMark,
    engine: ElectionEngine = Depends(get_engine),
) -> None:
    await engine.attendance.mark_present(election_position_id, payload.member_id, payload.present)


@router.post(
    "/positions/{election_position_id}/votes",
    response_model=VoteReceipt,
    status_code=status.HTTP_201_CREATED,
)
async def cast_vote(
    election_position_id: int,
    payload: BallotCreate,
    engine: ElectionEngine = Depends(get_engine),
) -> VoteReceipt:
    vote_id = await engine.ballots.cast_vote(election_position_id, payload.voter_id, payload.candidate_id)
    return VoteReceipt(vote_id=vote_id)


@router.post("/positions/{election_position_id}/close-round", response_model=RoundOutcomeOut)
async def close_round(
    election_position_id: int,
    payload: CloseRound,
    engine: ElectionEngine = Depends(get_engine),
) -> RoundOutcomeOut:
    outcome = await engine.positions.close_scrutiny_round(election_position_id, payload.expected_round)
    return RoundOutcomeOut.model_validate(outcome.to_dict())


@router.post("/positions/{election_position_id}/force-winner", response_model=WinnerOut)
async def force_winner(
    election_position_id: int,
    payload: ForceWinner,
    engine: ElectionEngine = Depends(get_engine),
) -> WinnerOut:
    winner = await engine.positions.force_winner(
        election_position_id, payload.candidate_id, payload.actor_id, payload.reason
    )
    return WinnerOut.model_validate(winner)


@router.post("/positions/{election_position_id}/reset", response_model=ElectionPositionOut)
async def reset_position(
    election_position_id: int,
    payload: ResetPosition,
    engine: ElectionEngine = Depends(get_engine),
) -> ElectionPositionOut:
    ep = await engine.positions.reset_position(
        election_position_id,
        payload.actor_id,
        clear_attendance=payload.clear_attendance,
        reopen=payload.reopen,
    )
    return ElectionPositionOut.model_validate(ep)


@router.delete("/votes/{vote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def void_vote(
    vote_id: int,
    payload: VoidVote,
    engine: ElectionEngine = Depends(get_engine),
) -> None:
    await engine.ballots.void_vote(vote_id, payload.actor_id, payload.reason)
