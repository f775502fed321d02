# src/BOARDVOTE/db/models/positions.py
from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin


class Position(IntPKMixin, Base):
    """Catalog entry for an office; created at setup time, never mutated during an election."""

    __tablename__ = "positions"

    name: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)

    def __repr__(self) -> str:
        return f"Position(id={self.id!r}, name={self.name!r})"
