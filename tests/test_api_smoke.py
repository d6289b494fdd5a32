from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

PCI_01_PARAMS = {
    "prohibited_activity": "Onboarding customers from sanctioned jurisdictions",
    "scope_boundary": "Retail onboarding",
    "enforcement_mechanism": "KYC workflow hard stop",
    "owner_role": "Head of Onboarding",
    "method": "System enforced",
    "trigger_frequency": "Every application",
}


@pytest.fixture
def client(sqlite_env: Path) -> TestClient:
    from app.main import create_app

    return TestClient(create_app())


def _new_pci(client: TestClient, risk_id: str = "RISK-1") -> dict:
    client.put(f"/api/risks/{risk_id}", json={"title": "Sanctions breach", "inherent_likelihood": 4, "inherent_impact": 5})
    client.put(f"/api/risks/{risk_id}/response", json={"response_type": "reduce_likelihood"})
    response = client.post(f"/api/risks/{risk_id}/pci", json={"template_id": "PCI-01", "parameters": PCI_01_PARAMS})
    assert response.status_code == 201, response.text
    return response.json()


def _attest_all(client: TestClient, pci: dict) -> dict:
    changes = [
        {"secondary_control_instance_id": c["id"], "status": "yes", "evidence_exists": True}
        for c in pci["secondary_controls"]
    ]
    response = client.post(f"/api/pci/{pci['id']}/attestations", json={"changes": changes}, headers={"X-Actor": "owner"})
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["version"]


def test_template_library(client: TestClient) -> None:
    listing = client.get("/api/templates").json()
    assert len(listing["items"]) == 16

    detail = client.get("/api/templates/PCI-01").json()
    assert len(detail["secondary_controls"]) == 10

    missing = client.get("/api/templates/PCI-99")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_risk_lifecycle_end_to_end(client: TestClient) -> None:
    client.put("/api/risks/RISK-1", json={"title": "Sanctions breach", "inherent_likelihood": 4, "inherent_impact": 5})

    gate = client.get("/api/risks/RISK-1/gate").json()
    assert gate["can_activate"] is False
    assert gate["has_response"] is False

    pci = _new_pci(client)
    assert pci["status"] == "draft"
    assert pci["control_count"] == 10
    assert pci["attested_count"] == 0
    assert pci["scores"]["effectiveness"]["computed"] is False

    blocked = client.post("/api/risks/RISK-1/activate")
    assert blocked.status_code == 422
    assert blocked.json()["error"] == "activation_blocked"

    pci = _attest_all(client, pci)
    assert pci["is_fully_attested"] is True
    assert pci["scores"]["effectiveness"]["percentage"] == 100.0
    assert pci["scores"]["confidence"]["confidence_score"] == 95
    assert pci["secondary_controls"][0]["attested_by"] == "owner"

    first = pci["secondary_controls"][0]
    stale = client.patch(
        f"/api/pci/{pci['id']}/attestations/{first['id']}",
        json={"status": "partial", "evidence_exists": True, "expected_version": 1},
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "conflict"

    gate = client.get("/api/risks/RISK-1/gate").json()
    assert gate["can_activate"] is True
    activated = client.post("/api/risks/RISK-1/activate")
    assert activated.status_code == 200
    assert activated.json()["risk"]["status"] == "active"

    assert client.post(f"/api/pci/{pci['id']}/activate").json()["status"] == "active"

    residual = client.get("/api/risks/RISK-1/residual").json()
    assert residual["residual_likelihood"] == 1
    assert residual["residual_impact"] == 5
    assert residual["residual_score"] == 5


def test_single_attestation_and_retire(client: TestClient) -> None:
    pci = _new_pci(client)
    first = pci["secondary_controls"][0]
    assert first["code"] == "D1"

    na = client.patch(f"/api/pci/{pci['id']}/attestations/{first['id']}", json={"status": "na"})
    assert na.status_code == 422
    assert na.json()["error"] == "na_rationale_required"

    saved = client.patch(
        f"/api/pci/{pci['id']}/attestations/{first['id']}",
        json={"status": "no", "evidence_exists": False, "expected_version": 1},
    )
    assert saved.status_code == 200
    body = saved.json()
    assert body["secondary_controls"][0]["version"] == 2
    assert body["scores"]["dime"]["cap_details"]["d_capped"] is True

    early = client.post(f"/api/pci/{pci['id']}/activate")
    assert early.status_code == 422
    assert early.json()["error"] == "attestation_incomplete"

    retired = client.post(f"/api/pci/{pci['id']}/retire")
    assert retired.json()["status"] == "retired"
    locked = client.patch(
        f"/api/pci/{pci['id']}/attestations/{first['id']}",
        json={"status": "yes", "evidence_exists": True},
    )
    assert locked.status_code == 422
    assert locked.json()["error"] == "pci_retired"


def test_failed_batch_save_writes_nothing(client: TestClient) -> None:
    pci = _new_pci(client)
    first, second = pci["secondary_controls"][:2]
    url = f"/api/pci/{pci['id']}/attestations"

    invalid = client.post(
        url,
        json={
            "changes": [
                {"secondary_control_instance_id": first["id"], "status": "yes", "evidence_exists": True},
                {"secondary_control_instance_id": second["id"], "status": "na"},
            ]
        },
    )
    assert invalid.status_code == 422
    assert invalid.json()["error"] == "na_rationale_required"

    stale = client.post(
        url,
        json={
            "changes": [
                {"secondary_control_instance_id": first["id"], "status": "yes", "evidence_exists": True,
                 "expected_version": 1},
                {"secondary_control_instance_id": second["id"], "status": "partial", "evidence_exists": True,
                 "expected_version": 7},
            ]
        },
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "conflict"

    after = client.get(f"/api/pci/{pci['id']}").json()
    assert after["attested_count"] == 0
    assert [c["version"] for c in after["secondary_controls"][:2]] == [1, 1]
    assert after["scores"]["effectiveness"]["computed"] is False


def test_evidence_request_flow(client: TestClient) -> None:
    pci = _attest_all(client, _new_pci(client))
    d1 = pci["secondary_controls"][0]
    yesterday = (date.today() - timedelta(days=1)).isoformat()

    created = client.post(
        "/api/evidence-requests",
        json={"secondary_control_instance_id": d1["id"], "due_date": yesterday, "notes": "Hard-stop config export"},
    )
    assert created.status_code == 201, created.text
    request = created.json()
    assert request["status"] == "open"
    assert request["is_critical_scope"] is True
    assert request["is_overdue"] is True

    scores = client.get(f"/api/pci/{pci['id']}/scores").json()
    drivers = scores["confidence"]["drivers"]
    assert any(d["type"] == "negative" and "overdue" in d["text"] for d in drivers)
    assert scores["confidence"]["confidence_score"] < 95

    empty = client.post(f"/api/evidence-requests/{request['id']}/submissions", json={"submission_note": " "})
    assert empty.status_code == 422
    assert empty.json()["error"] == "submission_note_required"

    submitted = client.post(f"/api/evidence-requests/{request['id']}/submissions", json={"submission_note": "export.csv"})
    assert submitted.status_code == 201
    assert submitted.json()["status"] == "submitted"

    no_notes = client.post(f"/api/evidence-requests/{request['id']}/review", json={"decision": "rejected"})
    assert no_notes.status_code == 422
    assert no_notes.json()["error"] == "review_notes_required"

    accepted = client.post(f"/api/evidence-requests/{request['id']}/review", json={"decision": "accepted"})
    assert accepted.json()["status"] == "accepted"
    assert accepted.json()["is_overdue"] is False

    listed = client.get("/api/evidence-requests", params={"pci_instance_id": pci["id"]}).json()
    assert [r["id"] for r in listed["items"]] == [request["id"]]

    scores = client.get(f"/api/pci/{pci['id']}/scores").json()
    assert scores["confidence"]["confidence_score"] == 100

    closed = client.post(f"/api/evidence-requests/{request['id']}/close")
    assert closed.json()["status"] == "closed"
    again = client.post(f"/api/evidence-requests/{request['id']}/cancel")
    assert again.status_code == 422
    assert again.json()["error"] == "invalid_transition"


def test_evidence_request_needs_due_date(client: TestClient) -> None:
    pci = _new_pci(client)
    response = client.post("/api/evidence-requests", json={"pci_instance_id": pci["id"]})
    assert response.status_code == 422
    assert response.json()["error"] == "due_date_required"


def test_suggestions_and_parameter_errors(client: TestClient) -> None:
    client.put("/api/risks/RISK-2", json={"title": "Fraudulent payouts"})
    no_response = client.get("/api/risks/RISK-2/suggestions")
    assert no_response.status_code == 422
    assert no_response.json()["error"] == "response_required"

    client.put("/api/risks/RISK-2/response", json={"response_type": "reduce_likelihood"})
    items = client.get("/api/risks/RISK-2/suggestions").json()["items"]
    assert items[0]["template_id"] == "PCI-01"
    assert all(item["source"] == "fallback" for item in items)

    bad_type = client.put("/api/risks/RISK-2/response", json={"response_type": "ignore"})
    assert bad_type.status_code == 422

    missing = client.post("/api/risks/RISK-2/pci", json={"template_id": "PCI-01", "parameters": {"owner_role": "CFO"}})
    assert missing.status_code == 422
    body = missing.json()
    assert body["error"] == "missing_parameters"
    assert "prohibited_activity" in body["details"]["missing"]

    unknown = client.post("/api/risks/RISK-2/pci", json={"template_id": "PCI-99", "parameters": PCI_01_PARAMS})
    assert unknown.status_code == 404

    no_risk = client.get("/api/risks/NOPE")
    assert no_risk.status_code == 404
