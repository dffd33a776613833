"""
Shared fixtures and test doubles for the Nephra backend tests.

Supabase is replaced by an in-memory, chainable query builder that applies
filters, updates and deletes against per-table row lists, so store and
service tests can observe what was written.

Usage:
    pytest backend/tests -v
"""

import copy
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

BASE_TIME = datetime(2026, 9, 1, 12, 0, tzinfo=timezone.utc)


def generate_uuid() -> str:
    """Generate a valid UUID string."""
    return str(uuid.uuid4())


def make_proposal_row(
    row_id: Optional[str] = None,
    user_id: Optional[str] = None,
    status: str = "Pending",
    title: Optional[str] = None,
    proposal: Optional[str] = "Title: Solar Canopy\nBuild shade over the parking lot.",
    admin_notes: Optional[str] = None,
    rejection_reason: Optional[str] = None,
    progress_project: Any = 1,
    progress_notes: Optional[List[Dict]] = None,
    attachments: Any = None,
    project_id: Optional[str] = None,
    days_ago: int = 0,
) -> Dict[str, Any]:
    """Factory for a ``project_requests`` row."""
    stamp = (BASE_TIME - timedelta(days=days_ago)).isoformat()
    return {
        "id": row_id or generate_uuid(),
        "user_id": user_id or generate_uuid(),
        "project_id": project_id,
        "title": title,
        "proposal": proposal,
        "status": status,
        "admin_notes": admin_notes,
        "rejection_reason": rejection_reason,
        "progress_project": progress_project,
        "progress_notes": progress_notes if progress_notes is not None else [],
        "attachments": attachments,
        "created_at": stamp,
        "updated_at": stamp,
    }


def make_existing_request_row(
    row_id: Optional[str] = None,
    user_id: Optional[str] = None,
    project_id: Optional[str] = None,
    status: str = "Pending",
    title: Optional[str] = None,
    purpose: Optional[str] = "I want to help with the sensor network.",
    semester: Optional[str] = "Fall 2026",
    admin_notes: Optional[str] = None,
    progress_project: Any = 1,
    progress_notes: Optional[List[Dict]] = None,
    days_ago: int = 0,
) -> Dict[str, Any]:
    """Factory for an ``existing_project_requests`` row."""
    stamp = (BASE_TIME - timedelta(days=days_ago)).isoformat()
    return {
        "id": row_id or generate_uuid(),
        "user_id": user_id or generate_uuid(),
        "project_id": project_id or generate_uuid(),
        "title": title,
        "purpose": purpose,
        "semester": semester,
        "status": status,
        "admin_notes": admin_notes,
        "progress_project": progress_project,
        "progress_notes": progress_notes if progress_notes is not None else [],
        "created_at": stamp,
        "updated_at": stamp,
    }


def make_note(value: int, note: str = "update", author: str = "Admin", days_ago: int = 0) -> Dict[str, Any]:
    return {
        "note": note,
        "author": author,
        "at": (BASE_TIME - timedelta(days=days_ago)).isoformat(),
        "value": value,
    }


# ============================================================================
# SUPABASE MOCKS
# ============================================================================


class MockSupabaseResponse:
    """Mock Supabase response object."""

    def __init__(self, data: List[Dict] = None):
        self.data = data if data is not None else []


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods.

    ``execute`` applies the pending operation to the shared table rows.
    """

    def __init__(self, client: "MockSupabaseClient", table_name: str):
        self._client = client
        self._table = table_name
        self._op = "select"
        self._payload: Any = None
        self._filters: List[tuple] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None

    def select(self, *args, **kwargs):
        self._op = "select"
        return self

    def update(self, fields: Dict):
        self._op = "update"
        self._payload = fields
        return self

    def insert(self, row: Any):
        self._op = "insert"
        self._payload = row
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, field: str, value: Any):
        self._filters.append((field, value))
        return self

    def order(self, field: str, desc: bool = False):
        self._order = (field, desc)
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def _matches(self, row: Dict) -> bool:
        return all(row.get(field) == value for field, value in self._filters)

    def execute(self):
        self._client.calls.append((self._table, self._op, list(self._filters), self._payload))
        if self._client.fail_with is not None:
            raise self._client.fail_with

        rows = self._client.tables.setdefault(self._table, [])

        if self._op == "insert":
            new_rows = self._payload if isinstance(self._payload, list) else [self._payload]
            rows.extend(copy.deepcopy(new_rows))
            return MockSupabaseResponse(copy.deepcopy(new_rows))

        matched = [row for row in rows if self._matches(row)]

        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return MockSupabaseResponse(copy.deepcopy(matched))

        if self._op == "delete":
            self._client.tables[self._table] = [row for row in rows if not self._matches(row)]
            return MockSupabaseResponse(copy.deepcopy(matched))

        if self._order:
            field, desc = self._order
            matched = sorted(matched, key=lambda r: str(r.get(field) or ""), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return MockSupabaseResponse(copy.deepcopy(matched))


class MockSupabaseClient:
    """Minimal stand-in for ``supabase.Client`` backed by dict rows."""

    def __init__(self, tables: Optional[Dict[str, List[Dict]]] = None):
        self.tables: Dict[str, List[Dict]] = tables if tables is not None else {}
        self.calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None

    def table(self, table_name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, table_name)

    def calls_for(self, table_name: str, op: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == table_name and c[1] == op]


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def admin_user():
    return {
        "id": generate_uuid(),
        "email": "admin@example.com",
        "full_name": "Dr. Rao",
        "role": "admin",
    }


@pytest.fixture
def mock_supabase():
    return MockSupabaseClient(
        {
            "project_requests": [],
            "existing_project_requests": [],
            "projects": [],
            "audit_logs": [],
            "notifications": [],
        }
    )
