# src/BOARDVOTE/db/models/common_enums.py
from __future__ import annotations

import enum


class PositionStatus(str, enum.Enum):
    pending = "pending"
    active = "active"
    completed = "completed"


class DecidedBy(str, enum.Enum):
    majority = "majority"
    plurality = "plurality"
    override = "override"


class AuditAction(str, enum.Enum):
    force_winner = "force_winner"
    reset_position = "reset_position"
    void_vote = "void_vote"
