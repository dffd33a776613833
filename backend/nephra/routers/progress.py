"""Applicant-facing progress history router."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from nephra.deps import get_current_user, get_review_service
from nephra.models.application_models import ProgressOverviewResponse
from nephra.review.errors import ReviewError
from nephra.routers._helpers import review_http_error
from nephra.services.review_service import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["progress"])


@router.get("/me/progress", response_model=ProgressOverviewResponse)
async def my_progress(
    sort: Literal["latest", "highest", "name"] = Query(
        "latest", description="latest, highest or name"
    ),
    search: Optional[str] = Query(None, max_length=200),
    service: ReviewService = Depends(get_review_service),
    current_user: dict = Depends(get_current_user),
):
    """Progress of the caller's approved applications with their latest notes."""
    try:
        projects = await service.progress_overview(
            str(current_user["id"]), sort=sort, search=search
        )
    except ReviewError as e:
        raise review_http_error(e) from e
    return ProgressOverviewResponse(projects=projects, total=len(projects))
