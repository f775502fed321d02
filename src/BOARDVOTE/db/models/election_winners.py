# src/BOARDVOTE/db/models/election_winners.py
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin


class ElectionWinner(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "election_winners"

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False
    )
    candidate_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False
    )
    won_at_scrutiny: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    decided_by: Mapped[str] = mapped_column(sa.Text, nullable=False)  # majority|plurality|override

    __table_args__ = (
        UniqueConstraint("election_id", "position_id", name="uq_election_winners_election_position"),
    )
