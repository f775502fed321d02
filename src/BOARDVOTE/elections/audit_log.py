"""
Append-only trail of administrative interventions (overrides, resets, voids).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from BOARDVOTE.app_logger import get_logger
from BOARDVOTE.db.models import AuditAction, ElectionAuditLog

log = get_logger("elections.audit_log")


async def record_admin_action(
    session: AsyncSession,
    *,
    election_id: int,
    action: AuditAction,
    election_position_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ElectionAuditLog:
    """Add an audit row to the caller's transaction (no commit)."""
    entry = ElectionAuditLog(
        election_id=election_id,
        election_position_id=election_position_id,
        actor_id=actor_id,
        action=action.value,
        details=dict(details or {}),
    )
    session.add(entry)
    await session.flush()
    log.warning(
        "admin action=%s election=%s election_position=%s actor=%s details=%s",
        action.value, election_id, election_position_id, actor_id, details,
    )
    return entry


async def list_admin_actions(session: AsyncSession, election_id: int) -> List[ElectionAuditLog]:
    res = await session.execute(
        sa.select(ElectionAuditLog)
        .where(ElectionAuditLog.election_id == election_id)
        .order_by(ElectionAuditLog.id)
    )
    return list(res.scalars().all())
