"""Integration tests for API endpoints"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from loan_origination.domain.exceptions import CollaboratorError
from loan_origination.domain.models import IndividualProfile

TENANT = {"X-Tenant-ID": "tenant-a"}
APPLICANT = {**TENANT, "X-Actor-Type": "APPLICANT", "X-Actor-Id": "person-1"}
STAFF = {**TENANT, "X-Actor-Type": "STAFF", "X-Actor-Id": "analyst-1"}
SYSTEM = {**TENANT, "X-Actor-Type": "SYSTEM"}

CLIENT = "loan_origination.infrastructure.clients.applicants.ApplicantDirectoryClient"


@pytest.fixture
def application_id(client: TestClient) -> str:
    response = client.post(
        "/v1/applications",
        headers=APPLICANT,
        json={
            "applicant_type": "INDIVIDUAL",
            "applicant_id": "person-1",
            "product_id": "prod-personal",
            "amount": "50000",
            "term_months": 12,
            "frequency": "MONTHLY",
            "purpose": "PERSONAL",
        },
    )
    assert response.status_code == 201
    return response.json()["application"]["id"]


@pytest.fixture
def directory(person_profile: IndividualProfile):
    """Applicant directory with a complete file for person-1"""
    with patch(f"{CLIENT}.get_profile", new_callable=AsyncMock) as get_profile, patch(
        f"{CLIENT}.get_uploaded_document_types", new_callable=AsyncMock
    ) as get_docs, patch(f"{CLIENT}.count_references", new_callable=AsyncMock) as count_refs:
        get_profile.return_value = person_profile
        get_docs.return_value = ["INE_FRONT", "PROOF_OF_ADDRESS"]
        count_refs.return_value = 2
        yield {"profile": get_profile, "documents": get_docs, "references": count_refs}


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    client.post("/v1/simulations", json={"amount": "1000", "term_months": 3, "annual_rate": "12"})
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "loan_simulations_total" in response.text


def test_simulation_endpoint(client: TestClient):
    """POST /v1/simulations serializes money as exact decimal strings"""
    response = client.post(
        "/v1/simulations",
        json={
            "amount": "50000",
            "term_months": 12,
            "frequency": "MONTHLY",
            "annual_rate": "24",
            "opening_commission_rate": "3",
            "include_schedule": True,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["payment"] == "4727.98"
    assert data["total_to_pay"] == "56735.76"
    assert data["opening_commission"] == "1500.00"
    assert data["cat"] == "16.47"
    assert len(data["schedule"]) == 12
    assert data["schedule"][-1]["remaining_balance"] in ("0", "0.00")


def test_simulation_rejects_bad_input(client: TestClient):
    response = client.post("/v1/simulations", json={"amount": "-5", "term_months": 12, "annual_rate": "24"})
    assert response.status_code == 422


def test_product_simulation_enforces_limits(client: TestClient):
    ok = client.post("/v1/products/prod-personal/simulations", headers=TENANT, json={"amount": "50000", "term_months": 12})
    assert ok.status_code == 200
    assert ok.json()["payment"] == "4727.98"

    too_small = client.post(
        "/v1/products/prod-personal/simulations", headers=TENANT, json={"amount": "500", "term_months": 12}
    )
    assert too_small.status_code == 422
    assert too_small.json()["error"] == "validation_error"


def test_unknown_product_is_404(client: TestClient):
    response = client.post("/v1/products/nope/simulations", headers=TENANT, json={"amount": "5000", "term_months": 12})
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_tenant_header_required(client: TestClient):
    response = client.get("/v1/applications")
    assert response.status_code == 422


def test_create_and_get_application(client: TestClient, application_id: str):
    response = client.get(f"/v1/applications/{application_id}", headers=APPLICANT)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["version"] == 1
    assert data["monthly_payment"] == "4727.98"
    assert data["allowed_next_statuses"] == ["SUBMITTED", "CANCELLED"]

    other_tenant = client.get(f"/v1/applications/{application_id}", headers={"X-Tenant-ID": "tenant-b"})
    assert other_tenant.status_code == 404


def test_update_terms(client: TestClient, application_id: str):
    response = client.patch(
        f"/v1/applications/{application_id}/terms",
        headers=APPLICANT,
        json={"amount": "10000", "frequency": "BIWEEKLY", "expected_version": 1},
    )
    assert response.status_code == 200
    data = response.json()["application"]
    assert data["version"] == 2
    assert data["requested_amount"] == "10000"
    assert data["payment_frequency"] == "BIWEEKLY"


def test_stale_version_conflict(client: TestClient, application_id: str):
    client.patch(f"/v1/applications/{application_id}/terms", headers=APPLICANT, json={"amount": "10000"})
    response = client.patch(
        f"/v1/applications/{application_id}/terms",
        headers=APPLICANT,
        json={"amount": "20000", "expected_version": 1},
    )
    assert response.status_code == 409
    assert response.json()["error"] == "concurrent_modification"


def test_submit_uses_directory_data(client: TestClient, application_id: str, directory):
    response = client.post(f"/v1/applications/{application_id}/submit", headers=APPLICANT)

    assert response.status_code == 200
    body = response.json()
    assert body["application"]["status"] == "SUBMITTED"
    assert body["application"]["snapshot"]["full_name"] == "Ana Lopez Ruiz"
    assert set(body["events"]) == {"application.status_changed", "application.submitted"}
    directory["profile"].assert_awaited_once()


def test_submit_incomplete_lists_missing_items(client: TestClient, application_id: str, directory):
    directory["documents"].return_value = []
    directory["references"].return_value = 1

    response = client.post(f"/v1/applications/{application_id}/submit", headers=APPLICANT)

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "incomplete_application"
    assert [m["field"] for m in data["details"]["missing"]] == ["documents", "references"]


def test_submit_when_directory_down(client: TestClient, application_id: str):
    with patch(f"{CLIENT}.get_profile", new_callable=AsyncMock) as get_profile:
        get_profile.side_effect = CollaboratorError("Applicant API timeout after 5.0s")
        response = client.post(f"/v1/applications/{application_id}/submit", headers=APPLICANT)

    assert response.status_code == 503
    assert response.json()["error"] == "collaborator_error"


def test_staff_cannot_submit(client: TestClient, application_id: str, directory):
    response = client.post(f"/v1/applications/{application_id}/submit", headers=STAFF)
    assert response.status_code == 409
    assert response.json()["details"]["role"] == "STAFF"


def test_full_review_flow(client: TestClient, application_id: str, directory):
    """Submit, review, counter-offer, accept, sync"""
    base = f"/v1/applications/{application_id}"
    client.post(f"{base}/submit", headers=APPLICANT)

    review = client.post(f"{base}/status", headers=STAFF, json={"status": "IN_REVIEW"})
    assert review.status_code == 200

    assign = client.post(f"{base}/assign", headers=STAFF, json={"assignee_id": "analyst-2"})
    assert assign.json()["application"]["assigned_to"] == "analyst-2"

    offer = client.post(f"{base}/counter-offer", headers=STAFF, json={"amount": "30000", "term_months": 12})
    assert offer.status_code == 200
    assert offer.json()["application"]["counter_offer"]["monthly_payment"] == "2836.79"

    accept = client.post(f"{base}/counter-offer/response", headers=APPLICANT, json={"accepted": True})
    assert accept.status_code == 200
    assert accept.json()["application"]["status"] == "APPROVED"
    assert "application.approved" in accept.json()["events"]

    staff_sync = client.post(f"{base}/sync", headers=STAFF, json={"external_id": "LN-1", "external_system": "core"})
    assert staff_sync.status_code == 422

    sync = client.post(f"{base}/sync", headers=SYSTEM, json={"external_id": "LN-1", "external_system": "core"})
    assert sync.status_code == 200
    assert sync.json()["application"]["status"] == "SYNCED"

    history = client.get(f"{base}/history", headers=TENANT).json()["entries"]
    assert [h["to_status"] for h in history] == ["DRAFT", "SUBMITTED", "IN_REVIEW", "APPROVED", "SYNCED"]
    assert history[3]["changed_by_type"] == "SYSTEM"
    assert history[3]["metadata"]["accepted_by"] == "person-1"

    schedule = client.get(f"{base}/schedule", headers=TENANT).json()
    assert schedule["total_periods"] == 12


def test_reject_and_illegal_follow_up(client: TestClient, application_id: str, directory):
    base = f"/v1/applications/{application_id}"
    client.post(f"{base}/submit", headers=APPLICANT)
    client.post(f"{base}/status", headers=STAFF, json={"status": "IN_REVIEW"})

    missing_reason = client.post(f"{base}/reject", headers=STAFF, json={})
    assert missing_reason.status_code == 422

    reject = client.post(f"{base}/reject", headers=STAFF, json={"reason": "LOW_SCORE", "notes": "Score 480"})
    assert reject.status_code == 200
    assert reject.json()["application"]["rejection_reason"] == "LOW_SCORE"

    approve = client.post(f"{base}/approve", headers=STAFF)
    assert approve.status_code == 409
    assert approve.json()["error"] == "illegal_transition"


def test_cancel_requires_reason(client: TestClient, application_id: str):
    base = f"/v1/applications/{application_id}"
    assert client.post(f"{base}/cancel", headers=APPLICANT, json={"reason": ""}).status_code == 422

    response = client.post(f"{base}/cancel", headers=APPLICANT, json={"reason": "No longer needed"})
    assert response.status_code == 200
    assert response.json()["application"]["status"] == "CANCELLED"


def test_list_applications_with_counts(client: TestClient, application_id: str):
    response = client.get("/v1/applications", headers=TENANT, params={"status": "DRAFT"})

    assert response.status_code == 200
    data = response.json()
    assert [item["id"] for item in data["items"]] == [application_id]
    assert data["counts"]["DRAFT"] == 1
    assert data["counts"]["APPROVED"] == 0


def test_verification_and_risk(client: TestClient, application_id: str, directory):
    base = f"/v1/applications/{application_id}"
    client.post(f"{base}/submit", headers=APPLICANT)

    verification = client.patch(f"{base}/verification", headers=STAFF, json={"checks": {"identity": True}})
    assert verification.status_code == 200
    assert verification.json()["application"]["verification_checklist"] == {"identity": True}

    risk = client.put(f"{base}/risk", headers=STAFF, json={"level": "LOW", "data": {"score": 720}})
    assert risk.status_code == 200
    assert risk.json()["application"]["risk_level"] == "LOW"


def test_affordability(client: TestClient, application_id: str):
    response = client.get(
        f"/v1/applications/{application_id}/affordability", headers=TENANT, params={"monthly_income": "25000"}
    )
    assert response.status_code == 200
    assert response.json()["debt_to_income"] == "18.91"


def test_bad_actor_headers(client: TestClient, application_id: str):
    response = client.post(
        f"/v1/applications/{application_id}/cancel",
        headers={**TENANT, "X-Actor-Type": "ROBOT", "X-Actor-Id": "r2"},
        json={"reason": "x"},
    )
    assert response.status_code == 422

    missing_id = client.post(
        f"/v1/applications/{application_id}/cancel",
        headers={**TENANT, "X-Actor-Type": "STAFF"},
        json={"reason": "x"},
    )
    assert missing_id.status_code == 422
