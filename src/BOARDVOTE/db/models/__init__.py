# src/BOARDVOTE/db/models/__init__.py
# Import every module that defines ORM classes so Base.metadata is complete.
from BOARDVOTE.db.base import Base

from .common_enums import PositionStatus, DecidedBy, AuditAction
from .members import Member
from .positions import Position
from .elections import Election
from .election_positions import ElectionPosition
from .election_attendance import ElectionAttendance
from .candidates import Candidate
from .votes import Vote, VOTE_UNIQUE_CONSTRAINT
from .election_winners import ElectionWinner
from .pdf_verifications import PdfVerification
from .election_audit_log import ElectionAuditLog

__all__ = [
    "Base",
    "PositionStatus",
    "DecidedBy",
    "AuditAction",
    "Member",
    "Position",
    "Election",
    "ElectionPosition",
    "ElectionAttendance",
    "Candidate",
    "Vote",
    "VOTE_UNIQUE_CONSTRAINT",
    "ElectionWinner",
    "PdfVerification",
    "ElectionAuditLog",
]
