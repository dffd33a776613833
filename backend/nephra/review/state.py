"""Review state machine for application records.

Lifecycle::

    Pending --approve--> Approved
    Pending --reject---> Rejected

Approval and rejection are one-way.  Progress updates are an orthogonal
action allowed while the record is not rejected and has not reached 100%.
Deletion is allowed from any status and is handled by the orchestrator.

The functions here only compute the partial row to write; they never touch
a store.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from nephra.models.application_models import (
    ApplicationOrigin,
    ApplicationRecord,
    ReviewStatus,
)
from nephra.review.errors import InvalidTransition, ReviewValidationError
from nephra.review.ledger import append_note
from nephra.review.progress import MAX_PERCENT, decode_progress, encode_progress

Record = ApplicationRecord

# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[ReviewStatus, list[ReviewStatus]] = {
    ReviewStatus.PENDING: [ReviewStatus.APPROVED, ReviewStatus.REJECTED],
    # Terminal for status changes
    ReviewStatus.APPROVED: [],
    ReviewStatus.REJECTED: [],
}

PROGRESS_UPDATABLE = {ReviewStatus.PENDING, ReviewStatus.APPROVED}

REJECTION_PREFIX = "REJECTION: "


def parse_status(value: Any) -> Optional[ReviewStatus]:
    """Map a stored status string to :class:`ReviewStatus`.

    A missing status is the column default, ``Pending``.  Unknown strings
    return ``None`` so every guard refuses them.
    """
    if value is None:
        return ReviewStatus.PENDING
    if isinstance(value, ReviewStatus):
        return value
    if isinstance(value, str):
        for status in ReviewStatus:
            if status.value.lower() == value.strip().lower():
                return status
    return None


def current_percent(record: Record) -> int:
    return decode_progress(record.progress_project, bool(record.progress_notes))


def _now_iso(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _require_transition(record: Record, action: str, target: ReviewStatus) -> None:
    status = parse_status(record.status)
    allowed = ALLOWED_TRANSITIONS.get(status, []) if status else []
    if target not in allowed:
        raise InvalidTransition(
            action,
            str(record.status),
            f"allowed: {', '.join(s.value for s in allowed) if allowed else 'none (decision already made)'}",
        )


def approve(record: Record, notes: Optional[str] = None, *, now: Optional[datetime] = None) -> dict:
    """Payload for ``Pending -> Approved``.

    Non-empty ``notes`` replace ``admin_notes``; empty notes keep the
    previous value.
    """
    _require_transition(record, "approve", ReviewStatus.APPROVED)
    payload: dict[str, Any] = {
        "status": ReviewStatus.APPROVED.value,
        "updated_at": _now_iso(now),
    }
    if notes and notes.strip():
        payload["admin_notes"] = notes.strip()
    return payload


def reject(record: Record, reason: Optional[str], *, now: Optional[datetime] = None) -> dict:
    """Payload for ``Pending -> Rejected``.

    New proposals store the reason in ``rejection_reason``.  Existing
    project requests have no such column, so the reason is appended to
    ``admin_notes`` as a ``REJECTION:`` line instead.
    """
    cleaned = reason.strip() if isinstance(reason, str) else ""
    if not cleaned:
        raise ReviewValidationError("reason", "A rejection reason is required")
    _require_transition(record, "reject", ReviewStatus.REJECTED)

    payload: dict[str, Any] = {
        "status": ReviewStatus.REJECTED.value,
        "updated_at": _now_iso(now),
    }
    if record.origin == ApplicationOrigin.NEW_PROPOSAL:
        payload["rejection_reason"] = cleaned
    else:
        line = f"{REJECTION_PREFIX}{cleaned}"
        existing = (record.admin_notes or "").rstrip()
        payload["admin_notes"] = f"{existing}\n\n{line}" if existing else line
    return payload


def update_progress(
    record: Record,
    percent: float,
    note: Optional[str],
    author: str,
    *,
    now: Optional[datetime] = None,
) -> dict:
    """Payload for a progress update; the status is left unchanged.

    ``progress_project`` and ``progress_notes`` are always written together.
    """
    status = parse_status(record.status)
    if status not in PROGRESS_UPDATABLE:
        raise InvalidTransition("update progress on", str(record.status))
    if current_percent(record) >= MAX_PERCENT:
        raise InvalidTransition(
            "update progress on", str(record.status), "progress is already 100%"
        )

    stamp = now or datetime.now(timezone.utc)
    return {
        "progress_project": encode_progress(percent),
        "progress_notes": append_note(record.progress_notes, note, author, percent, at=stamp),
        "updated_at": stamp.isoformat(),
    }
