"""
Tests for the HTTP layer.

These tests use FastAPI TestClient against the in-memory database, with the
store and notifier dependencies overridden.
"""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from api.deps import get_notifier, get_store
from api.main import app
from scholarflow.store import Store


@pytest.fixture
def client(engine, outbox):
    def _store():
        with Store(Session(engine)) as s:
            yield s

    app.dependency_overrides[get_store] = _store
    app.dependency_overrides[get_notifier] = lambda: outbox
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def program(seed):
    # no deadline: the API runs on the real clock
    return seed.program(quota=10, application_deadline=None)


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_application_status_update(client, seed, program, outbox):
    app_row = seed.application(program, status="submitted")
    r = client.patch(
        f"/admin/applications/{app_row.id}/status",
        json={"status": "enrolled", "admin_notes": "Welcome"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "enrolled"
    assert body["admin_notes"] == "Welcome"
    assert len(outbox) == 1


def test_invalid_status_is_422(client, seed, program):
    app_row = seed.application(program)
    r = client.patch(f"/admin/applications/{app_row.id}/status", json={"status": "accepted"})
    assert r.status_code == 422
    assert r.json()["error"] == "invalid_status"


def test_unknown_application_is_404(client):
    r = client.patch("/admin/applications/999/status", json={"status": "enrolled"})
    assert r.status_code == 404


def test_document_rejection_needs_reason(client, seed, program, outbox):
    req = seed.requirement(program)
    app_row = seed.application(program, status="documents_under_review")
    doc = seed.document(app_row, req)

    r = client.patch(f"/admin/documents/{doc.id}/review", json={"status": "rejected_invalid"})
    assert r.status_code == 422
    assert r.json()["error"] == "missing_rejection_reason"
    assert len(outbox) == 0


def test_document_approval_cascades(client, seed, program, store):
    req = seed.requirement(program)
    app_row = seed.application(program, status="documents_under_review")
    doc = seed.document(app_row, req)

    r = client.patch(f"/admin/documents/{doc.id}/review", json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    store.session.expire_all()
    assert store.get_application(app_row.id).status == "documents_approved"


def test_service_report_over_quota(client, seed, program):
    app_row = seed.application(program, status="service_pending")
    seed.report(app_row, 6)

    r = client.post(
        f"/student/applications/{app_row.id}/service-reports",
        json={"days_completed": 5, "description": "Weekend shelter shifts"},
    )
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "quota_exceeded"
    assert body["remaining"] == 4
    assert "4 days" in body["detail"]


def test_service_report_and_progress(client, seed, program):
    app_row = seed.application(program, status="enrolled")

    r = client.post(
        f"/student/applications/{app_row.id}/service-reports",
        json={"days_completed": 6, "description": "Food bank"},
    )
    assert r.status_code == 201
    assert r.json()["status"] == "pending_review"

    r = client.get(f"/student/applications/{app_row.id}/service-progress")
    assert r.json() == {"required": 10, "completed": 6, "remaining": 4, "met": False}


def test_bulk_review(client, seed, program):
    app_row = seed.application(program, status="service_pending")
    first = seed.report(app_row, 1)
    second = seed.report(app_row, 2)

    r = client.post(
        "/admin/service-reports/bulk-review",
        json={"report_ids": [first.id, second.id, 777], "action": "approve"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["succeeded"] == [first.id, second.id]
    assert list(body["failed"]) == ["777"]


def test_bulk_review_rejects_empty_list(client):
    r = client.post("/admin/service-reports/bulk-review", json={"report_ids": [], "action": "approve"})
    assert r.status_code == 422


def test_disbursement_for_submitted_is_409(client, seed, program):
    app_row = seed.application(program, status="submitted")
    r = client.post(
        f"/admin/applications/{app_row.id}/disbursements",
        json={"amount": "500.00", "payment_method": "bank_transfer", "disbursement_date": "2025-03-01"},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "ineligible_for_disbursement"


def test_disbursement_lifecycle(client, seed, program, store):
    app_row = seed.application(program, status="disbursement_pending")
    r = client.post(
        f"/admin/applications/{app_row.id}/disbursements",
        json={"amount": "750.00", "payment_method": "check", "disbursement_date": "2025-03-01"},
    )
    assert r.status_code == 201
    disb_id = r.json()["id"]

    r = client.put(f"/admin/disbursements/{disb_id}", json={"status": "processed", "reference_number": "CHK-88"})
    assert r.status_code == 200
    assert r.json()["reference_number"] == "CHK-88"
    store.session.expire_all()
    assert store.get_application(app_row.id).status == "disbursement_processed"


def test_student_flow(client, seed, program):
    req = seed.requirement(program)

    r = client.post("/student/applications", json={"student_id": 21, "program_id": program.id})
    assert r.status_code == 201
    app_id = r.json()["id"]

    r = client.post(f"/student/applications/{app_id}/submit")
    assert r.status_code == 409
    assert r.json()["error"] == "missing_documents"

    r = client.post(
        f"/student/applications/{app_id}/documents",
        json={"requirement_id": req.id, "file_path": "uploads/21/transcript.pdf"},
    )
    assert r.status_code == 201

    r = client.post(f"/student/applications/{app_id}/submit")
    assert r.status_code == 200
    assert r.json()["status"] == "submitted"
