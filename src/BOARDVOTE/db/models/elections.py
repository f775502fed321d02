# src/BOARDVOTE/db/models/elections.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, List, ClassVar

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from BOARDVOTE.db.base import Base, IntPKMixin, CreatedAtMixin


class Election(IntPKMixin, CreatedAtMixin, Base):
    __tablename__ = "elections"

    NOTE: ClassVar[str] = (
        "owner=election_orchestrator; "
        "description=One election cycle. created -> active -> closed; "
        "closed_at is immutable once set. At most one active election."
    )

    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=text("true"), default=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    positions: Mapped[List["ElectionPosition"]] = relationship(
        "ElectionPosition",
        back_populates="election",
        order_by="ElectionPosition.order_index",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # one active election at a time, enforced by the store as well
        sa.Index(
            "uq_elections_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        {"info": {"note": NOTE}},
    )

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    def __repr__(self) -> str:
        return f"Election(id={self.id!r}, name={self.name!r}, is_active={self.is_active!r})"
