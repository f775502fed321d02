"""Create election tables

Revision ID: 0001_create_election_tables
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

import logging

from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

from BOARDVOTE.db.base import JSONB

log = logging.getLogger(__name__)

# ---- Alembic identifiers ----
revision = "0001_create_election_tables"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("is_member", sa.Boolean, nullable=False, server_default=text("true")),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=text("false")),
        sa.UniqueConstraint("email", name="uq_members_email"),
        comment="Member identities owned by the member directory (read-only for elections).",
    )

    op.create_table(
        "positions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.UniqueConstraint("name", name="uq_positions_name"),
    )

    op.create_table(
        "elections",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=text("true")),
        _ts("closed_at"),
        _created_at(),
    )
    op.create_index(
        "uq_elections_single_active",
        "elections",
        ["is_active"],
        unique=True,
        postgresql_where=text("is_active"),
        sqlite_where=text("is_active = 1"),
    )

    op.create_table(
        "election_positions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position_id", sa.Integer, sa.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default=text("'pending'")),
        sa.Column("current_scrutiny", sa.Integer, nullable=False, server_default=text("1")),
        _ts("opened_at"),
        _ts("closed_at"),
        _created_at(),
        sa.UniqueConstraint("election_id", "position_id", name="uq_election_positions_election_position"),
        sa.UniqueConstraint("election_id", "order_index", name="uq_election_positions_election_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed')", name="ck_election_positions_status_valid"
        ),
        sa.CheckConstraint("current_scrutiny >= 1", name="ck_election_positions_scrutiny_positive"),
    )
    op.create_index(
        "uq_election_positions_single_active",
        "election_positions",
        ["election_id"],
        unique=True,
        postgresql_where=text("status = 'active'"),
        sqlite_where=text("status = 'active'"),
    )

    op.create_table(
        "election_attendance",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "election_position_id",
            sa.Integer,
            sa.ForeignKey("election_positions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("member_id", sa.Integer, sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_present", sa.Boolean, nullable=False, server_default=text("false")),
        _ts("marked_at"),
        _created_at(),
        sa.UniqueConstraint("election_position_id", "member_id", name="uq_election_attendance_position_member"),
    )

    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position_id", sa.Integer, sa.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("member_id", sa.Integer, sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=False),
        sa.UniqueConstraint(
            "member_id", "position_id", "election_id", name="uq_candidates_member_position_election"
        ),
    )

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("voter_id", sa.Integer, sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("candidate_id", sa.Integer, sa.ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position_id", sa.Integer, sa.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "election_position_id",
            sa.Integer,
            sa.ForeignKey("election_positions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("scrutiny_round", sa.Integer, nullable=False, server_default=text("1")),
        _created_at(),
        sa.UniqueConstraint(
            "voter_id", "position_id", "election_id", "scrutiny_round",
            name="uq_votes_voter_position_election_round",
        ),
    )
    op.create_index("ix_votes_position_round", "votes", ["election_position_id", "scrutiny_round"])

    op.create_table(
        "election_winners",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position_id", sa.Integer, sa.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("candidate_id", sa.Integer, sa.ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("won_at_scrutiny", sa.Integer, nullable=False),
        sa.Column("decided_by", sa.Text, nullable=False),
        _created_at(),
        sa.UniqueConstraint("election_id", "position_id", name="uq_election_winners_election_position"),
    )

    op.create_table(
        "pdf_verifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("verification_hash", sa.Text, nullable=False),
        sa.Column("president_name", sa.Text),
        sa.Column("results_digest", sa.String(64), nullable=False),
        _created_at(),
        sa.UniqueConstraint("verification_hash", name="uq_pdf_verifications_verification_hash"),
    )

    op.create_table(
        "election_audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("election_id", sa.Integer, sa.ForeignKey("elections.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "election_position_id",
            sa.Integer,
            sa.ForeignKey("election_positions.id", ondelete="SET NULL"),
        ),
        sa.Column("actor_id", sa.Integer, sa.ForeignKey("members.id", ondelete="SET NULL")),
        sa.Column("action", sa.Text, nullable=False),
        sa.Column("details", JSONB()),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_election_audit_log_election", "election_audit_log", ["election_id", "occurred_at"])
    log.info("created election tables")


def downgrade() -> None:
    op.drop_index("ix_election_audit_log_election", table_name="election_audit_log")
    op.drop_table("election_audit_log")
    op.drop_table("pdf_verifications")
    op.drop_table("election_winners")
    op.drop_index("ix_votes_position_round", table_name="votes")
    op.drop_table("votes")
    op.drop_table("candidates")
    op.drop_table("election_attendance")
    op.drop_index("uq_election_positions_single_active", table_name="election_positions")
    op.drop_table("election_positions")
    op.drop_index("uq_elections_single_active", table_name="elections")
    op.drop_table("elections")
    op.drop_table("positions")
    op.drop_table("members")
