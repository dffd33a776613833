"""Health-check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from nephra import database, deps

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/api/v1/health")
async def health_check():
    """Liveness plus which application stores are configured."""
    stores = {
        "supabase": "configured" if deps.supabase is not None else "unconfigured",
        "sqlalchemy": (
            "configured" if database.async_session_factory is not None else "unconfigured"
        ),
    }
    active = stores.get(deps.STORE_BACKEND, "unconfigured")
    return {
        "status": "healthy" if active == "configured" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store": deps.STORE_BACKEND,
        "services": stores,
    }
