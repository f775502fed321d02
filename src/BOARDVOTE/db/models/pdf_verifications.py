# src/BOARDVOTE/db/models/pdf_verifications.py
from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin


class PdfVerification(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "pdf_verifications"

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    verification_hash: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    president_name: Mapped[Optional[str]] = mapped_column(sa.Text)
    # sha256 of the audit projection at issue time
    results_digest: Mapped[str] = mapped_column(sa.String(64), nullable=False)
