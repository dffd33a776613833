"""Shared helpers for the review routers."""

import logging
from typing import Optional

from fastapi import HTTPException, status

from nephra.models.application_models import ApplicationOrigin
from nephra.review.errors import (
    ApplicationNotFound,
    InvalidTransition,
    ReviewConflict,
    ReviewError,
    ReviewValidationError,
    StoreFailure,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ApplicationNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (ReviewConflict, status.HTTP_409_CONFLICT),
    (ReviewValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreFailure, status.HTTP_502_BAD_GATEWAY),
)


def review_http_error(exc: ReviewError) -> HTTPException:
    """Translate a review-domain error into the matching HTTP response."""
    for error_type, code in _STATUS_CODES:
        if isinstance(exc, error_type):
            break
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, StoreFailure):
        # Backend messages can carry table and constraint names
        logger.error("Store failure: %s", exc)
        return HTTPException(status_code=code, detail="Application store is unavailable")
    logger.warning("Review request refused (%s): %s", code, exc)
    return HTTPException(status_code=code, detail=str(exc))


def parse_origin(value: Optional[str]) -> Optional[ApplicationOrigin]:
    """Query-string origin -> ``ApplicationOrigin``; 422 on unknown values."""
    if value is None or not value.strip():
        return None
    try:
        return ApplicationOrigin(value.strip())
    except ValueError:
        allowed = ", ".join(origin.value for origin in ApplicationOrigin)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown origin '{value}', expected one of {allowed}",
        )
