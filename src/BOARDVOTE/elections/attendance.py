"""
Attendance Ledger.

Per-position presence marks. The number of members marked present is the only
denominator the Majority Resolver ever sees.
"""

from __future__ import annotations

from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg
from sqlalchemy.dialects import sqlite as sqlite_dialect

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.base import utcnow
from BOARDVOTE.db.models import ElectionAttendance, ElectionPosition, PositionStatus
from BOARDVOTE.elections.base import EngineComponent
from BOARDVOTE.elections.errors import InvalidStateError
from BOARDVOTE.elections.members import MemberDirectory

log = get_logger("elections.attendance")


class AttendanceLedger(EngineComponent):

    async def mark_present(self, election_position_id: int, member_id: int, present: bool = True) -> None:
        """Mark (or unmark) a member present. Only while the position is active."""
        async with self.transaction():
            ep = await self.load_position(election_position_id, lock="share")
            if ep.status != PositionStatus.active.value:
                raise InvalidStateError(
                    f"Attendance can only change while the position is active (status={ep.status})",
                    context={"election_position_id": ep.id, "status": ep.status},
                )
            await MemberDirectory(self.session).require_member(member_id)
            await self._upsert(ep, member_id, present)

        log.info(
            "attendance election_position=%s member=%s present=%s",
            election_position_id, member_id, present,
        )

    async def _upsert(self, ep: ElectionPosition, member_id: int, present: bool) -> None:
        values = {
            "election_id": ep.election_id,
            "election_position_id": ep.id,
            "member_id": member_id,
            "is_present": present,
            "marked_at": utcnow(),
        }
        dialect = self.dialect_name
        if dialect in ("postgresql", "sqlite"):
            insert = pg.insert if dialect == "postgresql" else sqlite_dialect.insert
            stmt = insert(ElectionAttendance).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["election_position_id", "member_id"],
                set_={"is_present": stmt.excluded.is_present, "marked_at": stmt.excluded.marked_at},
            )
            await self.session.execute(stmt)
            return

        res = await self.session.execute(
            sa.select(ElectionAttendance).where(
                ElectionAttendance.election_position_id == ep.id,
                ElectionAttendance.member_id == member_id,
            )
        )
        row = res.scalar_one_or_none()
        if row is None:
            self.session.add(ElectionAttendance(**values))
        else:
            row.is_present = present
            row.marked_at = values["marked_at"]
        await self.session.flush()

    async def present_count(self, election_position_id: int) -> int:
        res = await self.session.execute(
            sa.select(sa.func.count())
            .select_from(ElectionAttendance)
            .where(
                ElectionAttendance.election_position_id == election_position_id,
                ElectionAttendance.is_present.is_(True),
            )
        )
        return int(res.scalar() or 0)

    async def present_members(self, election_position_id: int) -> List[int]:
        res = await self.session.execute(
            sa.select(ElectionAttendance.member_id)
            .where(
                ElectionAttendance.election_position_id == election_position_id,
                ElectionAttendance.is_present.is_(True),
            )
            .order_by(ElectionAttendance.member_id)
        )
        return list(res.scalars().all())

    async def is_present(self, election_position_id: int, member_id: int) -> bool:
        res = await self.session.execute(
            sa.select(ElectionAttendance.is_present).where(
                ElectionAttendance.election_position_id == election_position_id,
                ElectionAttendance.member_id == member_id,
            )
        )
        return bool(res.scalar_one_or_none())

    async def carry_over(self, ep: ElectionPosition) -> int:
        """
        Copy present marks from the closest earlier position of the same election.

        Runs inside the caller's transaction (no commit). Members that already
        have a row for ``ep`` are left alone. Returns the number of rows added.
        """
        res = await self.session.execute(
            sa.select(ElectionPosition.id)
            .where(
                ElectionPosition.election_id == ep.election_id,
                ElectionPosition.order_index < ep.order_index,
            )
            .order_by(ElectionPosition.order_index.desc())
            .limit(1)
        )
        previous_id: Optional[int] = res.scalar_one_or_none()
        if previous_id is None:
            return 0

        previous = set(await self.present_members(previous_id))
        res = await self.session.execute(
            sa.select(ElectionAttendance.member_id).where(ElectionAttendance.election_position_id == ep.id)
        )
        existing = set(res.scalars().all())

        now = utcnow()
        added = 0
        for member_id in sorted(previous - existing):
            self.session.add(
                ElectionAttendance(
                    election_id=ep.election_id,
                    election_position_id=ep.id,
                    member_id=member_id,
                    is_present=True,
                    marked_at=now,
                )
            )
            added += 1
        await self.session.flush()
        log.debug("carried over %s attendance marks into election_position=%s", added, ep.id)
        return added
