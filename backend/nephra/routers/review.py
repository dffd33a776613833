"""Admin review router.

Lists applications from both request tables and applies review actions:
approve, reject, record progress and delete.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from nephra.deps import get_review_service, require_admin
from nephra.models.application_models import (
    ApplicationListResponse,
    ApplicationResponse,
    ApproveRequest,
    ProgressUpdateRequest,
    RejectRequest,
    StatusCountsResponse,
)
from nephra.review.errors import ReviewError
from nephra.review.state import parse_status
from nephra.routers._helpers import parse_origin, review_http_error
from nephra.security import rate_limit_review_action
from nephra.services.review_service import ReviewService, author_name

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin/applications", tags=["admin-review"])


# ---------------------------------------------------------------------------
# GET  /admin/applications
# ---------------------------------------------------------------------------


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    status_filter: Optional[str] = Query(
        None, alias="status", description="Pending, Approved or Rejected"
    ),
    search: Optional[str] = Query(None, max_length=200),
    service: ReviewService = Depends(get_review_service),
    _admin: dict = Depends(require_admin),
):
    """All applications from both tables, newest first."""
    if status_filter and parse_status(status_filter) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown status '{status_filter}'",
        )
    try:
        applications = await service.list_applications(status_filter, search)
    except ReviewError as e:
        raise review_http_error(e) from e
    return ApplicationListResponse(applications=applications, total=len(applications))


# ---------------------------------------------------------------------------
# GET  /admin/applications/counts
# ---------------------------------------------------------------------------


@router.get("/counts", response_model=StatusCountsResponse)
async def application_counts(
    service: ReviewService = Depends(get_review_service),
    _admin: dict = Depends(require_admin),
):
    try:
        counts = await service.status_counts()
    except ReviewError as e:
        raise review_http_error(e) from e
    return StatusCountsResponse(**counts)


# ---------------------------------------------------------------------------
# GET  /admin/applications/{application_id}
# ---------------------------------------------------------------------------


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    origin: Optional[str] = Query(None, description="project_requests or existing_project_requests"),
    service: ReviewService = Depends(get_review_service),
    _admin: dict = Depends(require_admin),
):
    try:
        record = await service.get(application_id, parse_origin(origin))
        return await service.present(record)
    except ReviewError as e:
        raise review_http_error(e) from e


# ---------------------------------------------------------------------------
# POST  /admin/applications/{application_id}/approve
# ---------------------------------------------------------------------------


@router.post("/{application_id}/approve", response_model=ApplicationResponse)
@rate_limit_review_action()
async def approve_application(
    request: Request,
    application_id: str,
    body: Optional[ApproveRequest] = None,
    origin: Optional[str] = Query(None),
    service: ReviewService = Depends(get_review_service),
    admin: dict = Depends(require_admin),
):
    """Approve a pending application.

    Blank ``admin_notes`` leave any existing notes untouched.

    Raises:
        HTTPException 404: Application not found.
        HTTPException 409: Application is not pending, or changed concurrently.
    """
    notes = body.admin_notes if body else None
    try:
        record = await service.approve(
            application_id, notes, actor=admin, origin=parse_origin(origin)
        )
        return await service.present(record)
    except ReviewError as e:
        raise review_http_error(e) from e


# ---------------------------------------------------------------------------
# POST  /admin/applications/{application_id}/reject
# ---------------------------------------------------------------------------


@router.post("/{application_id}/reject", response_model=ApplicationResponse)
@rate_limit_review_action()
async def reject_application(
    request: Request,
    application_id: str,
    body: RejectRequest,
    origin: Optional[str] = Query(None),
    service: ReviewService = Depends(get_review_service),
    admin: dict = Depends(require_admin),
):
    """Reject a pending application with a mandatory reason.

    Raises:
        HTTPException 422: Reason missing or blank.
        HTTPException 404: Application not found.
        HTTPException 409: Application is not pending, or changed concurrently.
    """
    try:
        record = await service.reject(
            application_id, body.reason, actor=admin, origin=parse_origin(origin)
        )
        return await service.present(record)
    except ReviewError as e:
        raise review_http_error(e) from e


# ---------------------------------------------------------------------------
# POST  /admin/applications/{application_id}/progress
# ---------------------------------------------------------------------------


@router.post("/{application_id}/progress", response_model=ApplicationResponse)
@rate_limit_review_action()
async def update_application_progress(
    request: Request,
    application_id: str,
    body: ProgressUpdateRequest,
    origin: Optional[str] = Query(None),
    service: ReviewService = Depends(get_review_service),
    admin: dict = Depends(require_admin),
):
    """Record a progress percentage (0-100) with an optional note.

    Raises:
        HTTPException 422: Percent is not a number.
        HTTPException 404: Application not found.
        HTTPException 409: Application is rejected or already complete.
    """
    try:
        record = await service.update_progress(
            application_id,
            body.percent,
            body.note,
            author_name(admin),
            actor=admin,
            origin=parse_origin(origin),
        )
        return await service.present(record)
    except ReviewError as e:
        raise review_http_error(e) from e


# ---------------------------------------------------------------------------
# DELETE  /admin/applications/{application_id}
# ---------------------------------------------------------------------------


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
@rate_limit_review_action()
async def delete_application(
    request: Request,
    application_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    origin: Optional[str] = Query(None),
    service: ReviewService = Depends(get_review_service),
    admin: dict = Depends(require_admin),
):
    """Permanently delete an application. Requires ``?confirm=true``."""
    try:
        await service.delete(
            application_id, confirmed=confirm, actor=admin, origin=parse_origin(origin)
        )
    except ReviewError as e:
        raise review_http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
