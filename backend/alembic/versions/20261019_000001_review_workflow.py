"""Create project request, audit log and notification tables for application review.

Revision ID: 0001_review_workflow
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "0001_review_workflow"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _review_columns() -> list[sa.Column]:
    return [
        sa.Column("user_id", UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="Pending", nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("progress_project", sa.Numeric(), server_default="1", nullable=True),
        sa.Column(
            "progress_notes",
            JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "projects",
        _id_column(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "project_requests",
        _id_column(),
        *_review_columns(),
        sa.Column(
            "project_id",
            UUID(),
            sa.ForeignKey("projects.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("proposal", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("attachments", JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_project_requests_user", "project_requests", ["user_id"])
    op.create_index("idx_project_requests_status", "project_requests", ["status"])

    op.create_table(
        "existing_project_requests",
        _id_column(),
        *_review_columns(),
        sa.Column(
            "project_id",
            UUID(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("semester", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_existing_project_requests_user", "existing_project_requests", ["user_id"]
    )
    op.create_index(
        "idx_existing_project_requests_status", "existing_project_requests", ["status"]
    )

    op.create_table(
        "audit_logs",
        _id_column(),
        sa.Column("actor_id", UUID(), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("object_type", sa.Text(), nullable=False),
        sa.Column("object_id", sa.Text(), nullable=False),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_audit_logs_object", "audit_logs", ["object_type", "object_id"])

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("user_id", UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), server_default="info", nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default="false", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "type IN ('info','success','warning','error')",
            name="notifications_type_check",
        ),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    op.drop_index("idx_notifications_user", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_audit_logs_object", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(
        "idx_existing_project_requests_status", table_name="existing_project_requests"
    )
    op.drop_index(
        "idx_existing_project_requests_user", table_name="existing_project_requests"
    )
    op.drop_table("existing_project_requests")
    op.drop_index("idx_project_requests_status", table_name="project_requests")
    op.drop_index("idx_project_requests_user", table_name="project_requests")
    op.drop_table("project_requests")
    op.drop_table("projects")
