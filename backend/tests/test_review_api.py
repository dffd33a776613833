"""
Integration tests for the review HTTP API.

Authentication and the review service are swapped out through FastAPI
dependency overrides; the service itself is real and runs over the
in-memory Supabase mock.

Usage:
    pytest backend/tests/test_review_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from nephra.deps import get_current_user, get_review_service, require_admin
from nephra.main import app, resolve_allowed_origins
from nephra.review.errors import StoreFailure
from nephra.security import limiter
from nephra.services.review_events import SupabaseReviewEvents
from nephra.services.review_service import ReviewService
from nephra.stores.supabase_store import SupabaseApplicationStore

from conftest import generate_uuid, make_existing_request_row, make_note, make_proposal_row

BASE = "/api/v1/admin/applications"


@pytest.fixture
def applicant():
    return {"id": generate_uuid(), "email": "student@example.com", "role": "user"}


@pytest.fixture
def client(mock_supabase, admin_user, applicant):
    service = ReviewService(
        SupabaseApplicationStore(mock_supabase), SupabaseReviewEvents(mock_supabase)
    )
    app.dependency_overrides[get_review_service] = lambda: service
    app.dependency_overrides[require_admin] = lambda: admin_user
    app.dependency_overrides[get_current_user] = lambda: applicant
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


def _stored(mock_supabase, table, row_id):
    return next(r for r in mock_supabase.tables[table] if r["id"] == row_id)


class TestListEndpoints:
    def test_list_and_counts(self, client, mock_supabase):
        mock_supabase.tables["project_requests"].append(make_proposal_row(days_ago=2))
        mock_supabase.tables["existing_project_requests"].append(
            make_existing_request_row(status="Approved", days_ago=1)
        )

        listed = client.get(BASE)
        counts = client.get(f"{BASE}/counts")

        assert listed.status_code == 200
        body = listed.json()
        assert body["total"] == 2
        assert body["applications"][0]["origin"] == "existing_project_requests"
        assert body["applications"][1]["display_title"] == "Solar Canopy"
        assert counts.json() == {"all": 2, "Pending": 1, "Approved": 1, "Rejected": 0}

    def test_unknown_status_filter(self, client):
        assert client.get(BASE, params={"status": "Archived"}).status_code == 422

    def test_get_single(self, client, mock_supabase):
        row = make_proposal_row(progress_project=0.4, progress_notes=[make_note(40)])
        mock_supabase.tables["project_requests"].append(row)

        response = client.get(f"{BASE}/{row['id']}")

        assert response.status_code == 200
        assert response.json()["progress_percent"] == 40

    def test_get_missing_and_bad_origin(self, client):
        assert client.get(f"{BASE}/{generate_uuid()}").status_code == 404
        assert client.get(f"{BASE}/{generate_uuid()}", params={"origin": "nope"}).status_code == 422

    def test_malformed_id_is_not_found(self, client, mock_supabase):
        mock_supabase.fail_with = StoreFailure("fetch", "invalid input syntax for type uuid")

        assert client.get(f"{BASE}/not-a-uuid").status_code == 404
        assert client.post(f"{BASE}/not-a-uuid/approve").status_code == 404


class TestActions:
    def test_approve(self, client, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        response = client.post(f"{BASE}/{row['id']}/approve", json={"admin_notes": "Go"})

        assert response.status_code == 200
        assert response.json()["status"] == "Approved"
        assert _stored(mock_supabase, "project_requests", row["id"])["admin_notes"] == "Go"

    def test_approve_without_body(self, client, mock_supabase):
        row = make_proposal_row(admin_notes="keep")
        mock_supabase.tables["project_requests"].append(row)

        response = client.post(f"{BASE}/{row['id']}/approve")

        assert response.status_code == 200
        assert response.json()["admin_notes"] == "keep"

    def test_double_approve_is_conflict(self, client, mock_supabase):
        row = make_proposal_row(status="Approved")
        mock_supabase.tables["project_requests"].append(row)

        assert client.post(f"{BASE}/{row['id']}/approve").status_code == 409

    def test_reject_requires_reason(self, client, mock_supabase):
        row = make_existing_request_row()
        mock_supabase.tables["existing_project_requests"].append(row)

        response = client.post(f"{BASE}/{row['id']}/reject", json={"reason": "  "})

        assert response.status_code == 422
        assert _stored(mock_supabase, "existing_project_requests", row["id"])["status"] == "Pending"

    def test_reject(self, client, mock_supabase):
        row = make_existing_request_row()
        mock_supabase.tables["existing_project_requests"].append(row)

        response = client.post(
            f"{BASE}/{row['id']}/reject", json={"reason": "Incomplete documents"}
        )

        assert response.status_code == 200
        assert response.json()["admin_notes"] == "REJECTION: Incomplete documents"

    def test_progress(self, client, mock_supabase):
        row = make_proposal_row(status="Approved")
        mock_supabase.tables["project_requests"].append(row)

        response = client.post(
            f"{BASE}/{row['id']}/progress", json={"percent": 60, "note": "Beta shipped"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["progress_percent"] == 60
        assert body["progress_notes"][-1]["author"] == "Dr. Rao"

    def test_progress_bad_percent(self, client, mock_supabase):
        row = make_proposal_row(status="Approved")
        mock_supabase.tables["project_requests"].append(row)

        response = client.post(f"{BASE}/{row['id']}/progress", json={"percent": "most"})

        assert response.status_code == 422

    def test_delete_requires_confirm(self, client, mock_supabase):
        row = make_proposal_row()
        mock_supabase.tables["project_requests"].append(row)

        assert client.delete(f"{BASE}/{row['id']}").status_code == 422
        assert client.delete(f"{BASE}/{row['id']}", params={"confirm": "true"}).status_code == 204
        assert client.get(f"{BASE}/{row['id']}").status_code == 404

    def test_store_failure_is_bad_gateway(self, client, mock_supabase):
        mock_supabase.fail_with = StoreFailure("list", "boom")

        response = client.get(BASE)

        assert response.status_code == 502
        assert "boom" not in response.json()["detail"]


class TestProgressEndpoint:
    def test_my_progress(self, client, mock_supabase, applicant):
        mine = make_proposal_row(
            user_id=applicant["id"], status="Approved", title="Rain Garden",
            progress_project=0.25, progress_notes=[make_note(10), make_note(25)],
        )
        mock_supabase.tables["project_requests"].extend([mine, make_proposal_row(status="Approved")])

        response = client.get("/api/v1/me/progress", params={"sort": "highest"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["projects"][0]["progress_percent"] == 25
        assert [n["value"] for n in body["projects"][0]["recent_notes"]] == [25, 10]

    def test_invalid_sort(self, client):
        assert client.get("/api/v1/me/progress", params={"sort": "oldest"}).status_code == 422


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["store"] in ("supabase", "sqlalchemy")


def test_security_headers(client):
    response = client.get("/api/v1/health")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-Request-ID" in response.headers


class TestAllowedOrigins:
    def test_production_drops_insecure_origins(self):
        origins = resolve_allowed_origins(
            "production", "http://evil.example,https://localhost:3000,https://app.example"
        )
        assert origins == ["https://app.example"]

    def test_production_fallback(self):
        assert resolve_allowed_origins("production", "http://x") == ["https://nephra.vercel.app"]

    def test_development_defaults(self):
        assert "http://localhost:3000" in resolve_allowed_origins("development", None)


class _ProjectsDownStore(SupabaseApplicationStore):
    async def list_projects(self):
        raise StoreFailure("list projects", "connection reset")


def test_decision_reported_when_projects_unreadable(client, mock_supabase):
    row = make_proposal_row()
    mock_supabase.tables["project_requests"].append(row)
    app.dependency_overrides[get_review_service] = lambda: ReviewService(
        _ProjectsDownStore(mock_supabase)
    )

    response = client.post(f"{BASE}/{row['id']}/approve")

    assert response.status_code == 200
    assert response.json()["status"] == "Approved"
    assert _stored(mock_supabase, "project_requests", row["id"])["status"] == "Approved"
