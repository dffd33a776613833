"""ORM models for review side-effect tables: audit log and notifications."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from nephra.models.db.base import JSON_TYPE, Base, IdMixin

__all__ = ["AuditLog", "Notification"]


class AuditLog(IdMixin, Base):
    __tablename__ = "audit_logs"

    actor_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), nullable=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    object_type: Mapped[str] = mapped_column(Text, nullable=False)
    object_id: Mapped[str] = mapped_column(Text, nullable=False)
    # ``metadata`` is reserved on declarative classes
    event_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON_TYPE, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Notification(IdMixin, Base):
    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, server_default="info", nullable=False)
    is_read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
