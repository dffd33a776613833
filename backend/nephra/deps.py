"""Shared dependencies for the Nephra API routers.

Holds the Supabase client singleton, the bearer-token authentication
dependency, the admin role check and the ``ReviewService`` factory, so
router modules can ``from nephra.deps import …`` without importing ``main``.
"""

import asyncio
import logging
import os
import time
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from nephra import database
from nephra.security import log_security_event
from nephra.services.review_events import SqlAlchemyReviewEvents, SupabaseReviewEvents
from nephra.services.review_service import ReviewService
from nephra.stores.sqlalchemy_store import SqlAlchemyApplicationStore
from nephra.stores.supabase_store import SupabaseApplicationStore

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Supabase client (singleton)
# ---------------------------------------------------------------------------
_supabase_url = os.getenv("SUPABASE_URL")
_supabase_service_key = os.getenv("SUPABASE_SERVICE_KEY")

supabase: Optional[Client] = None
if _supabase_url and _supabase_service_key:
    supabase = create_client(_supabase_url, _supabase_service_key)
else:
    logger.warning("SUPABASE_URL/SUPABASE_SERVICE_KEY not set; auth and Supabase store disabled")

# Which backend serves the request tables: "supabase" (default) or "sqlalchemy"
STORE_BACKEND = os.getenv("NEPHRA_STORE", "supabase").strip().lower()

ADMIN_ROLES = ("admin", "service_role")

security = HTTPBearer()


# ---------------------------------------------------------------------------
# Small utility helpers
# ---------------------------------------------------------------------------


def _service_unavailable(what: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{what} is not configured",
    )


# ---------------------------------------------------------------------------
# User profile cache
# ---------------------------------------------------------------------------
_user_profile_cache: dict[str, tuple[dict, float]] = {}
_CACHE_TTL = 300  # 5 minutes
_CACHE_MAX_ENTRIES = 1000


def _get_cached_profile(user_id: str) -> dict | None:
    entry = _user_profile_cache.get(user_id)
    if entry:
        if time.time() - entry[1] < _CACHE_TTL:
            return entry[0]
        del _user_profile_cache[user_id]
    return None


def _set_cached_profile(user_id: str, profile: dict) -> None:
    if len(_user_profile_cache) > _CACHE_MAX_ENTRIES:
        oldest_key = min(_user_profile_cache, key=lambda k: _user_profile_cache[k][1])
        del _user_profile_cache[oldest_key]
    _user_profile_cache[user_id] = (profile, time.time())


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request, credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Resolve the bearer token to a ``users`` profile row.

    The token is validated by Supabase Auth (signature, expiry, revocation).
    Failures are logged as security events and always answered with the same
    generic 401 so callers cannot probe for accounts.
    """
    if supabase is None:
        raise _service_unavailable("Authentication")

    token = credentials.credentials
    if not token or len(token) < 20:
        log_security_event("auth_invalid_token_format", request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    try:
        response = await asyncio.to_thread(supabase.auth.get_user, token)
        if not response.user:
            log_security_event("auth_invalid_session", request)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
            )

        user_id = response.user.id
        cached = _get_cached_profile(user_id)
        if cached is not None:
            return cached

        profile_response = await asyncio.to_thread(
            lambda: supabase.table("users").select("*").eq("id", user_id).execute()
        )
        if not profile_response.data:
            logger.warning("User profile not found for authenticated user_id: %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User profile not found",
            )
        profile = profile_response.data[0]
        _set_cached_profile(user_id, profile)
        logger.debug("Authenticated user: %s", user_id)
        return profile

    except HTTPException:
        raise
    except Exception as e:
        log_security_event(
            "auth_error",
            request,
            {"error_type": type(e).__name__, "error_msg": str(e)[:100]},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        ) from e


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency that allows only ``admin``/``service_role`` users through."""
    if current_user.get("role", "") not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


# ---------------------------------------------------------------------------
# Review service
# ---------------------------------------------------------------------------


def build_review_service(backend: str = STORE_BACKEND) -> ReviewService:
    """Wire a ``ReviewService`` to the configured store and event sink.

    Raises:
        HTTPException 503: The selected backend has no connection settings.
    """
    if backend == "sqlalchemy":
        session_factory = database.async_session_factory
        if session_factory is None:
            raise _service_unavailable("DATABASE_URL")
        return ReviewService(
            SqlAlchemyApplicationStore(session_factory),
            SqlAlchemyReviewEvents(session_factory),
        )

    if backend != "supabase":
        logger.error("Unknown NEPHRA_STORE value %r", backend)
        raise _service_unavailable(f"Store backend '{backend}'")
    if supabase is None:
        raise _service_unavailable("Supabase")
    return ReviewService(SupabaseApplicationStore(supabase), SupabaseReviewEvents(supabase))


def get_review_service() -> ReviewService:
    return build_review_service()
