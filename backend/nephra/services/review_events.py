"""Side effects of review actions: audit trail rows and applicant notifications.

Events are emitted after the application write has succeeded.  A failing
sink is logged by the review service and never rolls back the decision.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from supabase import Client

from nephra.models.application_models import ApplicationOrigin, ReviewStatus
from nephra.models.db.review_event import AuditLog, Notification

logger = logging.getLogger(__name__)

AUDIT_TABLE = "audit_logs"
NOTIFICATIONS_TABLE = "notifications"


@dataclass
class ReviewEvent:
    """One completed review action."""

    action: str
    origin: ApplicationOrigin
    application_id: str
    actor_id: Optional[str] = None
    applicant_id: Optional[str] = None
    new_status: Optional[str] = None
    changes: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def audit_row(self) -> dict:
        return {
            "actor_id": self.actor_id,
            "action": self.action,
            "object_type": self.origin.value,
            "object_id": self.application_id,
            "metadata": {"changes": self.changes},
            "created_at": self.created_at.isoformat(),
        }

    def notification_row(self) -> Optional[dict]:
        """Applicant notification for status decisions, ``None`` otherwise."""
        if not self.new_status or not self.applicant_id:
            return None
        return {
            "user_id": self.applicant_id,
            "title": f"Application {self.new_status}",
            "message": f"Your project application has been {self.new_status.lower()}",
            "type": "success" if self.new_status == ReviewStatus.APPROVED.value else "warning",
            "created_at": self.created_at.isoformat(),
        }


class ReviewEventSink(Protocol):
    async def publish(self, event: ReviewEvent) -> None: ...


class SupabaseReviewEvents:
    """Writes events into the Supabase ``audit_logs``/``notifications`` tables."""

    def __init__(self, client: Client):
        self._client = client

    async def publish(self, event: ReviewEvent) -> None:
        await asyncio.to_thread(
            lambda: self._client.table(AUDIT_TABLE).insert(event.audit_row()).execute()
        )
        notification = event.notification_row()
        if notification:
            await asyncio.to_thread(
                lambda: self._client.table(NOTIFICATIONS_TABLE).insert(notification).execute()
            )


class SqlAlchemyReviewEvents:
    """Writes events through the ORM in a single transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def publish(self, event: ReviewEvent) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    AuditLog(
                        actor_id=event.actor_id,
                        action=event.action,
                        object_type=event.origin.value,
                        object_id=event.application_id,
                        event_metadata={"changes": event.changes},
                        created_at=event.created_at,
                    )
                )
                notification = event.notification_row()
                if notification:
                    session.add(
                        Notification(
                            user_id=notification["user_id"],
                            title=notification["title"],
                            message=notification["message"],
                            type=notification["type"],
                            created_at=event.created_at,
                        )
                    )
