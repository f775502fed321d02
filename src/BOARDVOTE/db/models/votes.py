# src/BOARDVOTE/db/models/votes.py
from __future__ import annotations

from typing import ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin

VOTE_UNIQUE_CONSTRAINT = "uq_votes_voter_position_election_round"


class Vote(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "votes"

    NOTE: ClassVar[str] = (
        "owner=ballot_store; "
        "description=One immutable ballot per (voter, position, election, scrutiny round). "
        "Only deleted by an administrative position reset or vote void."
    )

    voter_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("members.id", ondelete="RESTRICT"), nullable=False
    )
    candidate_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False
    )
    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False
    )
    election_position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("election_positions.id", ondelete="CASCADE"), nullable=False
    )
    scrutiny_round: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default=text("1"), default=1)

    __table_args__ = (
        UniqueConstraint("voter_id", "position_id", "election_id", "scrutiny_round", name=VOTE_UNIQUE_CONSTRAINT),
        sa.Index("ix_votes_position_round", "election_position_id", "scrutiny_round"),
        {"info": {"note": NOTE}},
    )
