"""Business logic for the admin application review workflow.

``ReviewService`` validates input, loads the record from whichever request
table holds it, asks the state machine for the next-state payload and
writes that payload back in one conditional update.
"""

import logging
import uuid
from typing import Any, Optional

from nephra.models.application_models import (
    ApplicationOrigin,
    ApplicationRecord,
    ApplicationResponse,
    ProgressSummary,
    record_from_row,
)
from nephra.review import state
from nephra.review.errors import ApplicationNotFound, ReviewValidationError, StoreFailure
from nephra.review.listing import (
    build_progress_overview,
    count_by_status,
    filter_records,
    merge_records,
    present_record,
    records_from_rows,
)
from nephra.review.progress import coerce_percent
from nephra.services.review_events import ReviewEvent, ReviewEventSink
from nephra.stores.base import ApplicationStore

logger = logging.getLogger(__name__)

# Probe order when the caller does not say which table a record lives in
LOOKUP_ORDER = (
    ApplicationOrigin.NEW_PROPOSAL,
    ApplicationOrigin.EXISTING_PROJECT_REQUEST,
)

DEFAULT_AUTHOR = "Admin"


def _is_uuid(value: Any) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _actor_id(actor: Optional[dict]) -> Optional[str]:
    return str(actor["id"]) if actor and actor.get("id") else None


def author_name(actor: Optional[dict]) -> str:
    """Display name recorded on progress notes."""
    if not actor:
        return DEFAULT_AUTHOR
    for key in ("full_name", "display_name", "email"):
        value = actor.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return DEFAULT_AUTHOR


class ReviewService:
    """Service layer for application review operations."""

    def __init__(self, store: ApplicationStore, events: Optional[ReviewEventSink] = None):
        self.store = store
        self.events = events

    # ------------------------------------------------------------------
    # get
    # ------------------------------------------------------------------

    async def get(
        self,
        application_id: str,
        origin: Optional[ApplicationOrigin] = None,
    ) -> ApplicationRecord:
        """Load a record, probing both tables unless ``origin`` is given.

        Raises:
            ApplicationNotFound: If no table holds the id.
        """
        if not _is_uuid(application_id):
            raise ApplicationNotFound(application_id, origin.value if origin else None)
        for candidate in (origin,) if origin else LOOKUP_ORDER:
            row = await self.store.fetch_by_id(candidate, application_id)
            if row is not None:
                return record_from_row(candidate, row)
        raise ApplicationNotFound(application_id, origin.value if origin else None)

    # ------------------------------------------------------------------
    # approve / reject
    # ------------------------------------------------------------------

    async def approve(
        self,
        application_id: str,
        notes: Optional[str] = None,
        *,
        actor: Optional[dict] = None,
        origin: Optional[ApplicationOrigin] = None,
    ) -> ApplicationRecord:
        """Move a pending application to ``Approved``.

        Raises:
            ApplicationNotFound: Unknown id.
            InvalidTransition: The application is not pending.
        """
        record = await self.get(application_id, origin)
        payload = state.approve(record, notes)
        updated = await self._write(record, payload)
        logger.info("Application %s (%s) approved", record.id, record.origin.value)
        await self._publish(record, "APPROVE", payload, actor, new_status=payload["status"])
        return updated

    async def reject(
        self,
        application_id: str,
        reason: Optional[str],
        *,
        actor: Optional[dict] = None,
        origin: Optional[ApplicationOrigin] = None,
    ) -> ApplicationRecord:
        """Move a pending application to ``Rejected``.

        The reason is checked before anything is read or written.

        Raises:
            ReviewValidationError: Missing reason.
            ApplicationNotFound: Unknown id.
            InvalidTransition: The application is not pending.
        """
        if not isinstance(reason, str) or not reason.strip():
            raise ReviewValidationError("reason", "A rejection reason is required")
        record = await self.get(application_id, origin)
        payload = state.reject(record, reason)
        updated = await self._write(record, payload)
        logger.info("Application %s (%s) rejected", record.id, record.origin.value)
        await self._publish(record, "REJECT", payload, actor, new_status=payload["status"])
        return updated

    # ------------------------------------------------------------------
    # update_progress
    # ------------------------------------------------------------------

    async def update_progress(
        self,
        application_id: str,
        percent: Any,
        note: Optional[str] = None,
        author: Optional[str] = None,
        *,
        actor: Optional[dict] = None,
        origin: Optional[ApplicationOrigin] = None,
    ) -> ApplicationRecord:
        """Record a new progress percentage and append a progress note.

        Raises:
            ReviewValidationError: ``percent`` is missing or not a number.
            ApplicationNotFound: Unknown id.
            InvalidTransition: The application is rejected or already at 100%.
        """
        value = coerce_percent(percent)
        record = await self.get(application_id, origin)
        payload = state.update_progress(record, value, note, author or author_name(actor))
        updated = await self._write(record, payload)
        logger.info(
            "Application %s (%s) progress set to %s%%",
            record.id,
            record.origin.value,
            payload["progress_notes"][-1]["value"],
        )
        await self._publish(record, "PROGRESS_UPDATE", payload, actor)
        return updated

    # ------------------------------------------------------------------
    # delete
    # ------------------------------------------------------------------

    async def delete(
        self,
        application_id: str,
        *,
        confirmed: bool,
        actor: Optional[dict] = None,
        origin: Optional[ApplicationOrigin] = None,
    ) -> None:
        """Permanently remove an application from its table.

        Raises:
            ReviewValidationError: ``confirmed`` is not set.
            ApplicationNotFound: Unknown id, or it vanished before the delete.
        """
        if not confirmed:
            raise ReviewValidationError("confirm", "Deletion must be explicitly confirmed")
        record = await self.get(application_id, origin)
        if not await self.store.delete_by_id(record.origin, record.id):
            raise ApplicationNotFound(record.id, record.origin.value)
        logger.info("Application %s (%s) deleted", record.id, record.origin.value)
        await self._publish(record, "DELETE", {}, actor)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def _project_index(self) -> dict[str, dict]:
        return {str(p["id"]): p for p in await self.store.list_projects() if p.get("id")}

    async def _all_records(self) -> list[ApplicationRecord]:
        groups = [
            records_from_rows(origin, await self.store.list_all(origin))
            for origin in LOOKUP_ORDER
        ]
        return merge_records(*groups)

    async def list_applications(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[ApplicationResponse]:
        """Both tables merged, newest first, with display titles resolved."""
        projects = await self._project_index()
        records = filter_records(await self._all_records(), status, search, projects)
        return [present_record(record, projects) for record in records]

    async def present(self, record: ApplicationRecord) -> ApplicationResponse:
        """Admin view of ``record``.

        Titles are resolved without the project index when the projects
        table cannot be read.
        """
        try:
            projects = await self._project_index()
        except StoreFailure:
            logger.warning("Project index unavailable; presenting %s without it", record.id)
            projects = None
        return present_record(record, projects)

    async def status_counts(self) -> dict[str, int]:
        return count_by_status(await self._all_records())

    async def progress_overview(
        self,
        user_id: str,
        sort: str = "latest",
        search: Optional[str] = None,
    ) -> list[ProgressSummary]:
        """Progress cards for one applicant's approved applications."""
        projects = await self._project_index()
        return build_progress_overview(
            await self._all_records(), user_id, sort=sort, search=search, projects=projects
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _write(self, record: ApplicationRecord, payload: dict) -> ApplicationRecord:
        row = await self.store.update_fields(
            record.origin,
            record.id,
            payload,
            expected_updated_at=record.updated_at,
        )
        return record_from_row(record.origin, row)

    async def _publish(
        self,
        record: ApplicationRecord,
        action: str,
        changes: dict,
        actor: Optional[dict],
        new_status: Optional[str] = None,
    ) -> None:
        if self.events is None:
            return
        event = ReviewEvent(
            action=action,
            origin=record.origin,
            application_id=record.id,
            actor_id=_actor_id(actor),
            applicant_id=record.user_id,
            new_status=new_status,
            changes=changes,
        )
        try:
            await self.events.publish(event)
        except Exception:
            logger.exception(
                "Recording %s event for application %s failed", action, record.id
            )
