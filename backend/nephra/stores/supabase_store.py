"""Application store backed by the Supabase PostgREST client.

supabase-py is synchronous, so every call is pushed onto a worker thread
with ``asyncio.to_thread`` to keep the event loop free.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Union

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from nephra.models.application_models import ApplicationOrigin
from nephra.review.errors import ApplicationNotFound, ReviewConflict, StoreFailure
from nephra.stores.base import PROJECTS_TABLE

logger = logging.getLogger(__name__)

# Joined project title lets title resolution skip a lookup
_ROW_SELECT = "*, projects (id, title)"


def _error_text(exc: Exception) -> str:
    if isinstance(exc, APIError):
        return exc.message or str(exc)
    return str(exc)


class SupabaseApplicationStore:
    """Reads and writes ``project_requests`` / ``existing_project_requests``."""

    def __init__(self, client: Client):
        self._client = client

    async def _run(self, operation: str, fn):
        try:
            return await asyncio.to_thread(fn)
        except (APIError, httpx.HTTPError) as e:
            logger.error("Supabase %s failed: %s", operation, _error_text(e))
            raise StoreFailure(operation, _error_text(e)) from e

    async def fetch_by_id(self, origin: ApplicationOrigin, application_id: str) -> Optional[dict]:
        table = origin.value
        response = await self._run(
            f"fetch {table}",
            lambda: self._client.table(table)
            .select(_ROW_SELECT)
            .eq("id", application_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def update_fields(
        self,
        origin: ApplicationOrigin,
        application_id: str,
        fields: dict[str, Any],
        expected_updated_at: Optional[Union[str, datetime]] = None,
    ) -> dict:
        table = origin.value

        def _update():
            query = self._client.table(table).update(fields).eq("id", application_id)
            if expected_updated_at is not None:
                stamp = (
                    expected_updated_at.isoformat()
                    if isinstance(expected_updated_at, datetime)
                    else expected_updated_at
                )
                query = query.eq("updated_at", stamp)
            return query.execute()

        response = await self._run(f"update {table}", _update)
        rows = response.data or []
        if rows:
            return rows[0]

        # Nothing matched: tell a vanished row apart from a stale read
        if expected_updated_at is not None and await self.fetch_by_id(origin, application_id):
            raise ReviewConflict(application_id)
        raise ApplicationNotFound(application_id, table)

    async def delete_by_id(self, origin: ApplicationOrigin, application_id: str) -> bool:
        table = origin.value
        response = await self._run(
            f"delete {table}",
            lambda: self._client.table(table).delete().eq("id", application_id).execute(),
        )
        return bool(response.data)

    async def list_all(self, origin: ApplicationOrigin) -> list[dict]:
        table = origin.value
        response = await self._run(
            f"list {table}",
            lambda: self._client.table(table)
            .select(_ROW_SELECT)
            .order("created_at", desc=True)
            .execute(),
        )
        return list(response.data or [])

    async def list_projects(self) -> list[dict]:
        response = await self._run(
            f"list {PROJECTS_TABLE}",
            lambda: self._client.table(PROJECTS_TABLE).select("id, title").execute(),
        )
        return list(response.data or [])
