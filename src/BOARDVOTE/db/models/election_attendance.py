# src/BOARDVOTE/db/models/election_attendance.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin


class ElectionAttendance(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "election_attendance"

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    election_position_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("election_positions.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    is_present: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=text("false"), default=False)
    marked_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("election_position_id", "member_id", name="uq_election_attendance_position_member"),
    )
