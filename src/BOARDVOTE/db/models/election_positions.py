# src/BOARDVOTE/db/models/election_positions.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin
from .common_enums import PositionStatus


class ElectionPosition(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "election_positions"

    NOTE: ClassVar[str] = (
        "owner=position_state_machine; "
        "description=Instance of a Position within one Election. "
        "status is pending|active|completed; current_scrutiny starts at 1. "
        "At most one active row per election."
    )

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False
    )
    order_index: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        sa.Text, nullable=False, server_default=text("'pending'"), default=PositionStatus.pending.value
    )  # pending|active|completed
    current_scrutiny: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, server_default=text("1"), default=1
    )
    opened_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    election = relationship("Election", back_populates="positions")
    position = relationship("Position", lazy="joined")

    __table_args__ = (
        UniqueConstraint("election_id", "position_id", name="uq_election_positions_election_position"),
        UniqueConstraint("election_id", "order_index", name="uq_election_positions_election_order"),
        sa.CheckConstraint("status IN ('pending', 'active', 'completed')", name="status_valid"),
        sa.CheckConstraint("current_scrutiny >= 1", name="scrutiny_positive"),
        # "one ballot box open at a time"
        sa.Index(
            "uq_election_positions_single_active",
            "election_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        {"info": {"note": NOTE}},
    )

    def __repr__(self) -> str:
        return (
            f"ElectionPosition(id={self.id!r}, election_id={self.election_id!r}, "
            f"position_id={self.position_id!r}, status={self.status!r}, "
            f"current_scrutiny={self.current_scrutiny!r})"
        )
