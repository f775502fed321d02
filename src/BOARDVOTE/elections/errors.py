"""
Election engine exception hierarchy.

Every engine operation runs as one transaction; any of these errors means the
transaction was rolled back (the single exception is ``advance`` closing a
finished election before raising ``AllPositionsCompletedError``). The HTTP
adapter maps ``error_code`` to a status and returns ``to_dict()`` verbatim.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple


class ElectionError(Exception):
    """
    Base exception class for all election engine errors.

    Attributes
    ----------
    message : str
        Human-readable error message
    error_code : str
        Machine-readable error code for categorization
    context : Dict[str, Any]
        Identifiers of the election/position/voter involved
    timestamp : datetime
        When the error occurred
    cause : Optional[Exception]
        Original exception (usually an IntegrityError) that caused this error
    """

    default_code = "election_error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})  # Create a copy to avoid mutation
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Structured error data for logging and HTTP responses."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class NotFoundError(ElectionError):
    default_code = "not_found"


class InvalidStateError(ElectionError):
    """Operation attempted against an election/position not in the required lifecycle state."""

    default_code = "invalid_state"


class AllPositionsCompletedError(InvalidStateError):
    """``advance`` found nothing left to open; the election has been closed."""

    default_code = "all_positions_completed"


class DuplicateVoteError(ElectionError):
    default_code = "duplicate_vote"


class DuplicateCandidateError(ElectionError):
    default_code = "duplicate_candidate"


class NotEligibleError(ElectionError):
    """Voter not present, member inactive, or candidate not part of this position."""

    default_code = "not_eligible"


class OutOfOrderError(ElectionError):
    default_code = "out_of_order"


class ElectionAlreadyActiveError(OutOfOrderError):
    default_code = "election_already_active"


class AlreadyProcessedError(ElectionError):
    """
    A concurrent close/advance request lost the compare-and-set.

    Benign for the caller: the state it wanted to move away from is gone.
    """

    default_code = "already_processed"


class TieUnresolvedError(ElectionError):
    """
    The final round ended tied (or there were no voters at all).

    The position stays ``active``; only an administrative override or a reset
    lets it progress.
    """

    default_code = "tie_unresolved"

    def __init__(
        self,
        message: str,
        *,
        candidate_ids: Sequence[int] = (),
        tally: Sequence[Tuple[int, int]] = (),
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        ctx = dict(context or {})
        ctx["candidate_ids"] = list(candidate_ids)
        ctx["tally"] = [{"candidate_id": c, "vote_count": n} for c, n in tally]
        super().__init__(message, context=ctx)
        self.candidate_ids: List[int] = list(candidate_ids)
        self.tally = list(tally)


__all__ = [
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
