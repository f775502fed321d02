"""
Verification codes printed on exported result certificates.

A certificate carries a random verification hash; the stored row also keeps
the SHA-256 digest of the audit projection at issue time, so a later lookup can
tell whether the persisted results still match what was printed.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Optional

import sqlalchemy as sa

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.base import utcnow
from BOARDVOTE.db.models import Candidate, Election, ElectionPosition, ElectionWinner, PdfVerification
from BOARDVOTE.elections.audit import ResultsProjector, results_digest
from BOARDVOTE.elections.base import EngineComponent
from BOARDVOTE.elections.errors import InvalidStateError, NotFoundError
from BOARDVOTE.schemas.elections import VerificationOut

log = get_logger("elections.verification")


def generate_verification_hash(election_id: int, election_name: str, timestamp: str) -> str:
    nonce = secrets.token_hex(16)
    return hashlib.sha256(f"{election_id}-{election_name}-{timestamp}-{nonce}".encode("utf-8")).hexdigest()


class ReportVerifier(EngineComponent):

    async def _first_position_winner(self, election_id: int) -> Optional[str]:
        res = await self.session.execute(
            sa.select(Candidate.name)
            .join(ElectionWinner, ElectionWinner.candidate_id == Candidate.id)
            .join(
                ElectionPosition,
                sa.and_(
                    ElectionPosition.election_id == ElectionWinner.election_id,
                    ElectionPosition.position_id == ElectionWinner.position_id,
                ),
            )
            .where(ElectionWinner.election_id == election_id)
            .order_by(ElectionPosition.order_index)
            .limit(1)
        )
        return res.scalar_one_or_none()

    async def issue_verification(self, election_id: int, president_name: Optional[str] = None) -> VerificationOut:
        """
        Issue a verification hash for a closed election.

        ``president_name`` defaults to the winner of the first position in the
        election's order.
        """
        async with self.transaction():
            election = await self.load_election(election_id)
            if not election.is_closed:
                raise InvalidStateError(
                    "Results can only be certified once the election is closed",
                    context={"election_id": election_id},
                )
            audit = await ResultsProjector(self.session, self.settings).project(election_id)
            digest = results_digest(audit)
            name = president_name or await self._first_position_winner(election_id)
            row = PdfVerification(
                election_id=election_id,
                verification_hash=generate_verification_hash(election.id, election.name, utcnow().isoformat()),
                president_name=name,
                results_digest=digest,
            )
            self.session.add(row)
            await self.session.flush()
            out = VerificationOut(
                election_id=election.id,
                election_name=election.name,
                verification_hash=row.verification_hash,
                president_name=row.president_name,
                issued_at=row.created_at,
                results_digest=digest,
                current_digest=digest,
                results_match=True,
            )
        log.info("issued verification for election=%s", election_id)
        return out

    async def verify(self, verification_hash: str) -> VerificationOut:
        res = await self.session.execute(
            sa.select(PdfVerification, Election)
            .join(Election, Election.id == PdfVerification.election_id)
            .where(PdfVerification.verification_hash == verification_hash)
        )
        row = res.first()
        if row is None:
            raise NotFoundError("Unknown verification code", context={"verification_hash": verification_hash})
        record, election = row
        current = results_digest(await ResultsProjector(self.session, self.settings).project(election.id))
        return VerificationOut(
            election_id=election.id,
            election_name=election.name,
            verification_hash=record.verification_hash,
            president_name=record.president_name,
            issued_at=record.created_at,
            results_digest=record.results_digest,
            current_digest=current,
            results_match=current == record.results_digest,
        )
