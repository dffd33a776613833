"""Read-side helpers: merging both request tables, filtering, counting and
building the applicant progress overview."""

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from nephra.models.application_models import (
    ApplicationOrigin,
    ApplicationRecord,
    ApplicationResponse,
    ProgressSummary,
    ReviewStatus,
    record_from_row,
)
from nephra.review.errors import ReviewValidationError
from nephra.review.ledger import latest_note_value, recent_notes
from nephra.review.state import current_percent, parse_status
from nephra.review.titles import resolve_title

__all__ = [
    "PROGRESS_SORTS",
    "RECENT_NOTES_SHOWN",
    "records_from_rows",
    "merge_records",
    "filter_records",
    "count_by_status",
    "present_record",
    "build_progress_overview",
]

PROGRESS_SORTS = ("latest", "highest", "name")
RECENT_NOTES_SHOWN = 3

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return _EPOCH


def records_from_rows(origin: ApplicationOrigin, rows: Iterable[dict]) -> list[ApplicationRecord]:
    return [record_from_row(origin, row) for row in rows]


def merge_records(*groups: Iterable[ApplicationRecord]) -> list[ApplicationRecord]:
    """Concatenate record groups, newest ``created_at`` first."""
    merged = [record for group in groups for record in group]
    merged.sort(key=lambda r: _timestamp(r.created_at), reverse=True)
    return merged


def _row_view(record: ApplicationRecord) -> dict:
    return record.model_dump()


def _matches_search(record: ApplicationRecord, term: str, projects: Optional[Mapping[str, Any]]) -> bool:
    row = _row_view(record)
    haystacks = [
        row.get("proposal"),
        row.get("purpose"),
        resolve_title(row, projects),
    ]
    return any(isinstance(h, str) and term in h.lower() for h in haystacks)


def filter_records(
    records: Iterable[ApplicationRecord],
    status: Optional[str] = None,
    search: Optional[str] = None,
    projects: Optional[Mapping[str, Any]] = None,
) -> list[ApplicationRecord]:
    """Keep records matching ``status`` and containing ``search`` (case-insensitive).

    Raises:
        ReviewValidationError: ``status`` is not a known review status.
    """
    wanted = parse_status(status) if status else None
    if status and wanted is None:
        raise ReviewValidationError("status", f"Unknown status '{status}'")
    term = search.strip().lower() if search and search.strip() else None
    result = []
    for record in records:
        if status and parse_status(record.status) != wanted:
            continue
        if term and not _matches_search(record, term, projects):
            continue
        result.append(record)
    return result


def count_by_status(records: Iterable[ApplicationRecord]) -> dict[str, int]:
    counts = {"all": 0, **{status.value: 0 for status in ReviewStatus}}
    for record in records:
        counts["all"] += 1
        status = parse_status(record.status)
        if status is not None:
            counts[status.value] += 1
    return counts


def present_record(
    record: ApplicationRecord,
    projects: Optional[Mapping[str, Any]] = None,
) -> ApplicationResponse:
    """Admin-facing view of a record with its display title and percentage."""
    row = _row_view(record)
    return ApplicationResponse(
        id=record.id,
        origin=record.origin,
        user_id=record.user_id,
        project_id=record.project_id,
        status=record.status,
        display_title=resolve_title(row, projects),
        admin_notes=record.admin_notes,
        rejection_reason=row.get("rejection_reason"),
        proposal=row.get("proposal"),
        purpose=row.get("purpose"),
        semester=row.get("semester"),
        progress_project=record.progress_project,
        progress_percent=current_percent(record),
        progress_notes=record.progress_notes,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def build_progress_overview(
    records: Iterable[ApplicationRecord],
    user_id: str,
    sort: str = "latest",
    search: Optional[str] = None,
    projects: Optional[Mapping[str, Any]] = None,
) -> list[ProgressSummary]:
    """Progress cards for one applicant's approved applications.

    ``sort`` is ``latest`` (newest first), ``highest`` (largest percentage
    first) or ``name`` (title A-Z).
    """
    if sort not in PROGRESS_SORTS:
        raise ValueError(f"Unknown sort '{sort}', expected one of {', '.join(PROGRESS_SORTS)}")

    term = search.strip().lower() if search and search.strip() else None
    summaries: list[tuple[ProgressSummary, datetime]] = []
    for record in records:
        if str(record.user_id) != str(user_id):
            continue
        if parse_status(record.status) is not ReviewStatus.APPROVED:
            continue
        title = resolve_title(_row_view(record), projects)
        if term and term not in title.lower():
            continue
        summary = ProgressSummary(
            id=record.id,
            origin=record.origin,
            title=title,
            status=record.status,
            progress_percent=current_percent(record),
            latest_note_value=latest_note_value(record.progress_notes),
            recent_notes=recent_notes(record.progress_notes, RECENT_NOTES_SHOWN),
            created_at=record.created_at,
        )
        summaries.append((summary, _timestamp(record.created_at)))

    if sort == "highest":
        summaries.sort(key=lambda item: item[0].progress_percent, reverse=True)
    elif sort == "name":
        summaries.sort(key=lambda item: item[0].title.lower())
    else:
        summaries.sort(key=lambda item: item[1], reverse=True)
    return [summary for summary, _ in summaries]
