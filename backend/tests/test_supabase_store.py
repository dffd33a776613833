"""
Tests for the Supabase-backed application store (nephra.stores.supabase_store).
"""

import asyncio

import httpx
import pytest
from postgrest.exceptions import APIError

from nephra.models.application_models import ApplicationOrigin
from nephra.review.errors import ApplicationNotFound, ReviewConflict, StoreFailure
from nephra.stores.supabase_store import SupabaseApplicationStore

from conftest import generate_uuid, make_existing_request_row, make_proposal_row

NEW = ApplicationOrigin.NEW_PROPOSAL
EXISTING = ApplicationOrigin.EXISTING_PROJECT_REQUEST


@pytest.fixture
def store(mock_supabase):
    return SupabaseApplicationStore(mock_supabase)


class TestFetch:
    def test_found(self, store, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        fetched = asyncio.run(store.fetch_by_id(NEW, row["id"]))

        assert fetched["id"] == row["id"]
        table, op, filters, _ = mock_supabase.calls[-1]
        assert (table, op, filters) == ("project_requests", "select", [("id", row["id"])])

    def test_missing_is_none(self, store):
        assert asyncio.run(store.fetch_by_id(EXISTING, generate_uuid())) is None


class TestUpdate:
    def test_conditional_update(self, store, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        updated = asyncio.run(
            store.update_fields(
                NEW, row["id"], {"status": "Approved"}, expected_updated_at=row["updated_at"]
            )
        )

        assert updated["status"] == "Approved"
        _, _, filters, payload = mock_supabase.calls_for("project_requests", "update")[0]
        assert ("updated_at", row["updated_at"]) in filters
        assert payload == {"status": "Approved"}

    def test_stale_stamp_is_conflict(self, store, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        with pytest.raises(ReviewConflict):
            asyncio.run(
                store.update_fields(
                    NEW, row["id"], {"status": "Approved"},
                    expected_updated_at="2001-01-01T00:00:00+00:00",
                )
            )
        assert row["status"] == "Pending"

    def test_missing_row_is_not_found(self, store):
        with pytest.raises(ApplicationNotFound):
            asyncio.run(store.update_fields(EXISTING, generate_uuid(), {"status": "Approved"}))

    def test_unconditional_without_stamp(self, store, mock_supabase):
        row = make_existing_request_row()
        mock_supabase.tables["existing_project_requests"].append(row)

        asyncio.run(store.update_fields(EXISTING, row["id"], {"admin_notes": "ok"}))

        _, _, filters, _ = mock_supabase.calls_for("existing_project_requests", "update")[0]
        assert filters == [("id", row["id"])]


class TestDeleteAndList:
    def test_delete(self, store, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        assert asyncio.run(store.delete_by_id(NEW, row["id"])) is True
        assert asyncio.run(store.delete_by_id(NEW, row["id"])) is False

    def test_list_newest_first(self, store, mock_supabase):
        old = make_proposal_row(days_ago=3)
        new = make_proposal_row(days_ago=0)
        mock_supabase.tables["project_requests"].extend([old, new])

        rows = asyncio.run(store.list_all(NEW))

        assert [r["id"] for r in rows] == [new["id"], old["id"]]

    def test_list_projects(self, store, mock_supabase):
        mock_supabase.tables["projects"].append({"id": "p1", "title": "Beta"})
        assert asyncio.run(store.list_projects()) == [{"id": "p1", "title": "Beta"}]


class TestFailures:
    def test_api_error_becomes_store_failure(self, store, mock_supabase):
        mock_supabase.fail_with = APIError(
            {"message": "permission denied for table project_requests", "code": "42501"}
        )

        with pytest.raises(StoreFailure) as exc_info:
            asyncio.run(store.fetch_by_id(NEW, generate_uuid()))

        assert "permission denied" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, APIError)

    def test_transport_error_becomes_store_failure(self, store, mock_supabase):
        mock_supabase.fail_with = httpx.ConnectError("connection refused")

        with pytest.raises(StoreFailure):
            asyncio.run(store.list_all(EXISTING))
