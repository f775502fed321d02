# src/BOARDVOTE/db/base.py
from __future__ import annotations

from typing import Any, Optional
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import MetaData
from sqlalchemy.dialects import postgresql as pg
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON, TypeDecorator


# -----------------------------------------------------------------------------
# Declarative Base with naming conventions (great for Alembic autogenerate)
# -----------------------------------------------------------------------------
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    """Shared declarative base for all models."""
    __allow_unmapped__ = True  # NOTE strings and other plain class attributes

    # Make names available during annotation evaluation everywhere.
    __sa_eval_namespace__ = {
        "Any": Any,
        "Optional": Optional,
        "datetime": datetime,
    }


def utcnow() -> datetime:
    """Timezone-aware "now" used for application-side timestamps."""
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# JSONB that becomes JSONB on Postgres and JSON elsewhere
# -----------------------------------------------------------------------------
class JSONB(TypeDecorator):
    """
    Platform-aware JSON type.

    - On PostgreSQL ⇒ JSONB
    - Elsewhere     ⇒ JSON
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(pg.JSONB())
        return dialect.type_descriptor(JSON())


# -----------------------------------------------------------------------------
# Common mixins
# -----------------------------------------------------------------------------
class IntPKMixin:
    """
    Integer surrogate key.

    Election tables rely on primary key order as "insertion order" (candidate
    tie-breaks, deterministic audit ordering), so ids are monotonic integers.
    """
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)


class CreatedAtMixin:
    """
    - created_at: timezone-aware timestamp, set by the application so that
      ordering is sub-second precise on every backend
    """
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utcnow,
        server_default=sa.func.now(),
        nullable=False,
    )


ORMBase = Base

__all__ = ["Base", "ORMBase", "IntPKMixin", "CreatedAtMixin", "JSONB", "utcnow"]
