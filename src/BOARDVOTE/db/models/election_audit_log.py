# src/BOARDVOTE/db/models/election_audit_log.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin, JSONB, utcnow


class ElectionAuditLog(IntPKMixin, Base):
    __tablename__ = "election_audit_log"

    election_id: Mapped[int] = mapped_column(
        sa.Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    election_position_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer, ForeignKey("election_positions.id", ondelete="SET NULL")
    )
    actor_id: Mapped[Optional[int]] = mapped_column(
        sa.Integer, ForeignKey("members.id", ondelete="SET NULL")
    )
    action: Mapped[str] = mapped_column(sa.Text, nullable=False)  # force_winner|reset_position|void_vote
    details: Mapped[Optional[dict]] = mapped_column(JSONB())

    occurred_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow, server_default=sa.func.now()
    )

    __table_args__ = (
        sa.Index("ix_election_audit_log_election", "election_id", "occurred_at"),
    )
