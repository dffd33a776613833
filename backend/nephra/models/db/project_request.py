"""ORM models for the two application request tables.

``project_requests`` holds new-project proposals; ``existing_project_requests``
holds requests to join a project that already exists.  The shapes differ:
only proposals carry ``rejection_reason`` and ``attachments``.
"""

from typing import Any, Optional

from sqlalchemy import ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from nephra.models.db.base import JSON_TYPE, Base, IdMixin, TimestampMixin

__all__ = ["ProjectRequest", "ExistingProjectRequest"]


class _RequestColumns(IdMixin, TimestampMixin):
    user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Review
    status: Mapped[str] = mapped_column(Text, server_default="Pending", nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Progress: fraction in [0, 1]; legacy rows may hold whole percentages
    progress_project: Mapped[Optional[float]] = mapped_column(
        Numeric(asdecimal=False), server_default="1", nullable=True
    )
    progress_notes: Mapped[Optional[list[Any]]] = mapped_column(
        JSON_TYPE, server_default="[]", nullable=True
    )


class ProjectRequest(_RequestColumns, Base):
    __tablename__ = "project_requests"

    project_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )
    proposal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachments: Mapped[Optional[Any]] = mapped_column(JSON_TYPE, nullable=True)


class ExistingProjectRequest(_RequestColumns, Base):
    __tablename__ = "existing_project_requests"

    project_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    semester: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
