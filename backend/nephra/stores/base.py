"""Storage boundary for application records.

The review workflow only ever talks to a store through these calls, one set
per request table.  Rows are plain dicts of JSON-compatible values.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Union

from nephra.models.application_models import ApplicationOrigin

__all__ = ["ApplicationStore", "PROJECTS_TABLE", "same_instant"]

PROJECTS_TABLE = "projects"


class ApplicationStore(Protocol):
    async def fetch_by_id(self, origin: ApplicationOrigin, application_id: str) -> Optional[dict]:
        """Return the row, or ``None`` if it does not exist."""
        ...

    async def update_fields(
        self,
        origin: ApplicationOrigin,
        application_id: str,
        fields: dict[str, Any],
        expected_updated_at: Optional[Union[str, datetime]] = None,
    ) -> dict:
        """Write ``fields`` in one statement and return the updated row.

        When ``expected_updated_at`` is given the write only applies if the
        stored ``updated_at`` still equals it.

        Raises:
            ApplicationNotFound: No row with that id.
            ReviewConflict: The row exists but ``updated_at`` moved on.
            StoreFailure: Transport or database error.
        """
        ...

    async def delete_by_id(self, origin: ApplicationOrigin, application_id: str) -> bool:
        """Delete the row; ``False`` if nothing was deleted."""
        ...

    async def list_all(self, origin: ApplicationOrigin) -> list[dict]:
        ...

    async def list_projects(self) -> list[dict]:
        """Known projects (``id``, ``title``) for title resolution."""
        ...


def _parse(value: Union[str, datetime, None]) -> Optional[datetime]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return None


def same_instant(left: Union[str, datetime, None], right: Union[str, datetime, None]) -> bool:
    """Compare two timestamps that may be ISO strings or (naive) datetimes.

    Naive values are taken as UTC, matching how the request tables store
    ``timestamptz`` columns.
    """
    if left is None or right is None:
        return left is right
    a, b = _parse(left), _parse(right)
    if a is None or b is None:
        return str(left) == str(right)
    return a == b
