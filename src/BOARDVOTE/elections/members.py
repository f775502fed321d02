"""
Read-only adapter over the member directory's ``members`` table.
"""

from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.db.models import Member
from BOARDVOTE.elections.errors import NotEligibleError, NotFoundError


class MemberDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, member_id: int) -> Optional[Member]:
        return await self.session.get(Member, member_id, populate_existing=True)

    async def require_member(self, member_id: int) -> Member:
        """Return the member if it exists and is an active member of the institution."""
        member = await self.get(member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found", context={"member_id": member_id})
        if not member.is_member:
            raise NotEligibleError(
                f"Member {member_id} is not an active member",
                context={"member_id": member_id},
            )
        return member

    async def count_members(self) -> int:
        res = await self.session.execute(
            sa.select(sa.func.count()).select_from(Member).where(Member.is_member.is_(True))
        )
        return int(res.scalar() or 0)
