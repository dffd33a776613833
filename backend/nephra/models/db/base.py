"""Re-export Base and provide common mixins for ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from nephra.database import Base

__all__ = ["Base", "JSON_TYPE", "IdMixin", "TimestampMixin"]

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class IdMixin:
    """String UUID primary key generated client-side."""

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)


class TimestampMixin:
    """Mixin that adds ``created_at`` and ``updated_at`` columns.

    Both default to ``NOW()`` on the server side.  The review workflow sets
    ``updated_at`` explicitly on every write since it doubles as the
    optimistic-concurrency token.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
