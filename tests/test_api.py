"""
HTTP API - Integration Tests
============================
Routes, status-code mapping and actor headers over the in-memory store.

Run:  pytest tests/test_api.py -v
"""
import pytest
from fastapi.testclient import TestClient

from src.main import create_app, wire_services
from src.sla.domain.value_objects import StaticPolicyProvider

from tests.conftest import (
    ADMIN_1,
    ADMIN_2,
    INACTIVE_RESPONDER,
    REPORTER,
    RESPONDER,
    RESPONDER_2,
    FakeUserDirectory,
    InMemoryIncidentRepository,
    RecordingDispatcher,
)

REPORTER_HEADERS = {"X-Actor-Id": REPORTER.id, "X-Actor-Role": "REPORTER"}
ADMIN_HEADERS = {"X-Actor-Id": ADMIN_1.id, "X-Actor-Role": "ADMIN"}
RESPONDER_HEADERS = {"X-Actor-Id": RESPONDER.id, "X-Actor-Role": "RESPONDER"}


@pytest.fixture
def app():
    application = create_app()
    wire_services(
        application,
        InMemoryIncidentRepository(),
        FakeUserDirectory([ADMIN_1, ADMIN_2, RESPONDER, RESPONDER_2, INACTIVE_RESPONDER, REPORTER]),
        RecordingDispatcher(),
        StaticPolicyProvider(),
    )
    return application


@pytest.fixture
def client(app):
    # No context manager: the lifespan would wire the SQL store
    return TestClient(app)


def _report(client, severity="HIGH", title="Checkout 500s"):
    return client.post(
        "/incidents",
        json={"title": title, "description": "Customers see errors", "severity": severity},
        headers=REPORTER_HEADERS,
    )


# ═══════════════════════════════════════════════════════════════════════════
# INCIDENTS
# ═══════════════════════════════════════════════════════════════════════════
class TestIncidentRoutes:
    def test_report_incident(self, client):
        r = _report(client, "CRITICAL")
        assert r.status_code == 201
        body = r.json()
        assert body["incident_number"].startswith("INC-")
        assert body["incident_number"].endswith("-0001")
        assert body["status"] == "OPEN"
        assert body["reporter_id"] == REPORTER.id
        assert body["sla_status"] == "WITHIN_SLA"
        assert len(body["status_log"]) == 1

    def test_missing_actor_header(self, client):
        r = client.post("/incidents", json={"title": "x", "severity": "LOW"})
        assert r.status_code == 422

    def test_invalid_actor_role(self, client):
        r = client.post(
            "/incidents",
            json={"title": "x", "severity": "LOW"},
            headers={"X-Actor-Id": REPORTER.id, "X-Actor-Role": "ROOT"},
        )
        assert r.status_code == 400

    def test_invalid_severity_is_422(self, client):
        r = _report(client, "SEV0")
        assert r.status_code == 422
        assert r.json()["error"] == "InvalidSeverityException"

    def test_get_unknown_incident(self, client):
        r = client.get("/incidents/missing")
        assert r.status_code == 404
        assert r.json()["error"] == "ResourceNotFoundException"

    def test_get_incident(self, client):
        created = _report(client).json()
        r = client.get(f"/incidents/{created['id']}")
        assert r.status_code == 200
        assert r.json()["title"] == "Checkout 500s"

    def test_assign_and_reassign(self, client):
        incident_id = _report(client).json()["id"]
        r = client.post(f"/incidents/{incident_id}/assign",
                        json={"responder_id": RESPONDER.id}, headers=ADMIN_HEADERS)
        assert r.status_code == 200
        assert r.json()["status"] == "ASSIGNED"

        r = client.post(f"/incidents/{incident_id}/assign",
                        json={"responder_id": RESPONDER_2.id}, headers=ADMIN_HEADERS)
        assert r.status_code == 409
        assert r.json()["error"] == "AlreadyAssignedException"

    def test_assign_inactive_responder(self, client):
        incident_id = _report(client).json()["id"]
        r = client.post(f"/incidents/{incident_id}/assign",
                        json={"responder_id": INACTIVE_RESPONDER.id}, headers=ADMIN_HEADERS)
        assert r.status_code == 400
        assert r.json()["error"] == "InvalidResponderException"

    def test_invalid_transition_is_409(self, client):
        incident_id = _report(client).json()["id"]
        r = client.patch(f"/incidents/{incident_id}/status",
                         json={"status": "RESOLVED"}, headers=ADMIN_HEADERS)
        assert r.status_code == 409

    def test_unknown_status_is_400(self, client):
        incident_id = _report(client).json()["id"]
        r = client.patch(f"/incidents/{incident_id}/status",
                         json={"status": "DONE"}, headers=ADMIN_HEADERS)
        assert r.status_code == 400

    def test_full_lifecycle(self, client):
        incident_id = _report(client).json()["id"]
        client.post(f"/incidents/{incident_id}/assign",
                    json={"responder_id": RESPONDER.id}, headers=ADMIN_HEADERS)
        r = client.patch(f"/incidents/{incident_id}/status",
                         json={"status": "INVESTIGATING", "notes": "looking"}, headers=RESPONDER_HEADERS)
        assert r.json()["acknowledged_at"] is not None

        r = client.patch(f"/incidents/{incident_id}/status",
                         json={"status": "RESOLVED"}, headers=RESPONDER_HEADERS)
        body = r.json()
        assert body["status"] == "RESOLVED"
        assert body["sla_met"] is True
        assert [e["status"] for e in body["status_log"]] == [
            "OPEN", "ASSIGNED", "INVESTIGATING", "RESOLVED"
        ]

    def test_severity_change(self, client):
        created = _report(client, "LOW").json()
        r = client.patch(f"/incidents/{created['id']}/severity",
                         json={"severity": "CRITICAL"}, headers=ADMIN_HEADERS)
        assert r.status_code == 200
        assert r.json()["severity"] == "CRITICAL"
        assert r.json()["sla_deadline"] < created["sla_deadline"]

    def test_add_comment(self, client):
        incident_id = _report(client).json()["id"]
        r = client.post(f"/incidents/{incident_id}/comments",
                        json={"text": "rolled back", "is_internal": True}, headers=RESPONDER_HEADERS)
        assert r.status_code == 201
        assert r.json()["comments"][0]["author_id"] == RESPONDER.id

    def test_correlation_id_echoed(self, client):
        r = client.get("/incidents/missing", headers={"X-Correlation-ID": "abc-123"})
        assert r.headers["X-Correlation-ID"] == "abc-123"
        assert r.json()["correlation_id"] == "abc-123"

    def test_unwired_service_is_503(self):
        r = TestClient(create_app()).get("/incidents/anything")
        assert r.status_code == 503


# ═══════════════════════════════════════════════════════════════════════════
# SLA
# ═══════════════════════════════════════════════════════════════════════════
class TestSLARoutes:
    def test_incident_sla_view(self, client):
        incident_id = _report(client, "CRITICAL").json()["id"]
        r = client.get(f"/sla/incidents/{incident_id}")
        assert r.status_code == 200
        body = r.json()
        assert body["classification"] == "WITHIN_SLA"
        assert body["time_remaining"].startswith("3h") or body["time_remaining"] == "4h 0m"

    def test_manual_sweep(self, client):
        _report(client)
        _report(client, "LOW")
        r = client.post("/sla/sweep", headers=ADMIN_HEADERS)
        assert r.status_code == 200
        body = r.json()
        assert body["evaluated"] == 2
        assert body["skipped"] is False

        status = client.get("/sla/scheduler").json()
        assert status["running"] is False
        assert status["last_result"]["evaluated"] == 2

    def test_policy_table(self, client):
        r = client.get("/sla/policies")
        assert r.status_code == 200
        body = r.json()
        assert body["warning_threshold_percent"] == 20
        assert body["policies"]["CRITICAL"]["resolution_hours"] == 4
        assert body["policies"]["LOW"]["source"] == "default"


# ═══════════════════════════════════════════════════════════════════════════
# HEALTH
# ═══════════════════════════════════════════════════════════════════════════
class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "healthy"
        assert body["checks"]["sla_scheduler"] == "stopped"

    def test_root(self, client):
        assert client.get("/").json()["modules"]["sla"]["prefix"] == "/sla"
