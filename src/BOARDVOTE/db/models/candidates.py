# src/BOARDVOTE/db/models/candidates.py
from __future__ import annotations

from typing import ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin


class Candidate(IntPKMixin, Base):
    __tablename__ = "candidates"

    NOTE: ClassVar[str] = (
        "owner=candidate_registry; "
        "description=A member nominated for a position within an election. "
        "name and email are copied from the member at nomination time and never "
        "re-read, so results stay readable after profile changes."
    )

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False
    )
    member_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("members.id", ondelete="RESTRICT"), nullable=False
    )

    # snapshot at nomination
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    email: Mapped[str] = mapped_column(sa.Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("member_id", "position_id", "election_id", name="uq_candidates_member_position_election"),
        {"info": {"note": NOTE}},
    )

    def __repr__(self) -> str:
        return f"Candidate(id={self.id!r}, name={self.name!r}, position_id={self.position_id!r})"
