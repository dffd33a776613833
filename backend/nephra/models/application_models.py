"""Pydantic models for application records and the review API.

An application lives in one of two tables with different columns.  The
record models below keep that split as a tagged union discriminated by
``origin``, whose value is the name of the table the row came from.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nephra.review.progress import round_half_up
from nephra.review.titles import try_decode_json


class ApplicationOrigin(str, Enum):
    """Which request table a record belongs to."""

    NEW_PROPOSAL = "project_requests"
    EXISTING_PROJECT_REQUEST = "existing_project_requests"


class ReviewStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ProgressNote(BaseModel):
    """One entry of a record's ``progress_notes`` history."""

    note: Optional[str] = None
    author: Optional[str] = None
    at: Optional[Union[datetime, str]] = None
    value: Optional[int] = None

    @field_validator("value", mode="before")
    @classmethod
    def _percent_or_none(cls, value: Any) -> Any:
        # Older rows hold floats or out-of-range values
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return max(0, min(100, round_half_up(number)))


class _ApplicationRecordBase(BaseModel):
    """Columns shared by both request tables.

    Extra columns (joined ``projects``/``users`` objects and the like) are
    kept so title resolution can use them.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = ReviewStatus.PENDING.value
    admin_notes: Optional[str] = None
    progress_project: Optional[float] = None
    progress_notes: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[Union[str, datetime]] = None
    updated_at: Optional[Union[str, datetime]] = None

    @field_validator("progress_project", mode="before")
    @classmethod
    def _numeric_or_none(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("progress_notes", mode="before")
    @classmethod
    def _notes_list(cls, value: Any) -> Any:
        decoded = try_decode_json(value)
        if not isinstance(decoded, list):
            return []
        return [entry for entry in decoded if isinstance(entry, dict)]


class NewProposalRecord(_ApplicationRecordBase):
    """Row of ``project_requests``: an applicant proposing a new project."""

    origin: Literal[ApplicationOrigin.NEW_PROPOSAL] = ApplicationOrigin.NEW_PROPOSAL
    proposal: Optional[str] = None
    rejection_reason: Optional[str] = None
    attachments: Optional[Any] = None


class ExistingProjectRequestRecord(_ApplicationRecordBase):
    """Row of ``existing_project_requests``: a request to join a project.

    This table has no ``rejection_reason`` column.
    """

    origin: Literal[ApplicationOrigin.EXISTING_PROJECT_REQUEST] = (
        ApplicationOrigin.EXISTING_PROJECT_REQUEST
    )
    purpose: Optional[str] = None
    semester: Optional[str] = None


ApplicationRecord = Annotated[
    Union[NewProposalRecord, ExistingProjectRequestRecord],
    Field(discriminator="origin"),
]


def record_from_row(origin: ApplicationOrigin, row: Dict[str, Any]) -> Union[
    NewProposalRecord, ExistingProjectRequestRecord
]:
    """Build the typed record for a raw store row."""
    data = {key: value for key, value in row.items() if key not in ("origin", "_source")}
    if origin is ApplicationOrigin.NEW_PROPOSAL:
        return NewProposalRecord(**data)
    return ExistingProjectRequestRecord(**data)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class ApproveRequest(BaseModel):
    """Request body for approving a pending application."""

    admin_notes: Optional[str] = Field(None, max_length=10000)


class RejectRequest(BaseModel):
    """Request body for rejecting a pending application.

    Emptiness is checked by the review service so the error surfaces as a
    review validation failure rather than a schema error.
    """

    reason: str = Field("", max_length=2000, description="Reason for rejection")


class ProgressUpdateRequest(BaseModel):
    """Request body for recording progress on an application."""

    percent: Any = Field(..., description="Progress percentage, 0-100")
    note: Optional[str] = Field(None, max_length=5000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ApplicationResponse(BaseModel):
    """Application row as returned to admins, with derived display fields."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    origin: ApplicationOrigin
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    status: Optional[str] = ReviewStatus.PENDING.value
    display_title: str
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    proposal: Optional[str] = None
    purpose: Optional[str] = None
    semester: Optional[str] = None
    progress_project: Optional[float] = None
    progress_percent: int = 1
    progress_notes: List[ProgressNote] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]
    total: int


class StatusCountsResponse(BaseModel):
    """Counts per review status, plus the overall total under ``all``."""

    all: int = 0
    Pending: int = 0
    Approved: int = 0
    Rejected: int = 0


class ProgressSummary(BaseModel):
    """Applicant-facing progress card for one approved application."""

    id: str
    origin: ApplicationOrigin
    title: str
    status: Optional[str] = None
    progress_percent: int
    latest_note_value: Optional[int] = None
    recent_notes: List[ProgressNote] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ProgressOverviewResponse(BaseModel):
    projects: List[ProgressSummary]
    total: int
