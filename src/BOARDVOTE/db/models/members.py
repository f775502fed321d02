# src/BOARDVOTE/db/models/members.py
from __future__ import annotations

from typing import ClassVar

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.orm import Mapped, mapped_column

from BOARDVOTE.db.base import Base, IntPKMixin


class Member(IntPKMixin, Base):
    __tablename__ = "members"

    NOTE: ClassVar[str] = (
        "owner=member_directory; "
        "description=Member identities owned by the member directory. "
        "The election engine only reads these rows."
    )

    __table_args__ = {
        "comment": "Member identities owned by the member directory (read-only for elections).",
        "info": {"note": NOTE},
    }

    full_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    email: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    is_member: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=text("true"), default=True)
    is_admin: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=text("false"), default=False)

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, email={self.email!r})"
