"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from desk_analytics.api import PERFORMANCE_ERROR, UPSTREAM_ERROR, create_app, get_source
from desk_analytics.client import DeskAuthError

from fakes import FakeSource, ticket


@pytest.fixture
def source():
    return FakeSource(
        active=[
            ticket("T1", status="Closed", assignee="Alice"),
            ticket("T2", status="Open", assignee="Alice"),
        ],
        metrics={"T1": {"resolutionTime": "1 days 02:00 hrs", "threadCount": 1}, "T2": {"threadCount": 3}},
        departments=[("1", "Support")],
    )


@pytest.fixture
def api(source):
    app = create_app()
    app.dependency_overrides[get_source] = lambda: source
    return TestClient(app)


def test_health(api):
    response = api.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_agent_performance(api, source):
    response = api.get("/api/agent-performance", params={"departmentId": "all", "agentId": "all"})

    assert response.status_code == 200
    body = response.json()
    alice = body["agents"][0]
    assert alice["agentName"] == "Alice"
    assert alice["ticketsCreated"] == 2
    assert alice["avgResolutionHours"] == pytest.approx(26.0)
    assert body["summary"]["pendingTickets"] == 1


def test_agent_performance_empty_range(api):
    response = api.get("/api/agent-performance", params={"fromDate": "2030-01-01", "toDate": "2030-01-31"})
    assert response.status_code == 200
    assert response.json() == {"summary": {}, "agents": []}


def test_agent_performance_failure_is_generic(api, source):
    source.error = DeskAuthError("Token refresh failed (401)")
    response = api.get("/api/agent-performance")
    assert response.status_code == 500
    assert response.json() == {"error": PERFORMANCE_ERROR}


def test_view_page(api):
    response = api.get("/api/views/pending", params={"status": ["open"], "pageSize": 10})

    assert response.status_code == 200
    body = response.json()
    assert body["view"] == "pending"
    assert body["total"] == 1
    assert body["items"][0]["ticketNumber"] == "T2"


def test_unknown_view(api):
    assert api.get("/api/views/bogus").status_code == 404


def test_view_bad_date(api):
    response = api.get("/api/views/archived", params={"fromDate": "first of may"})
    assert response.status_code == 422


def test_view_failure(api, source):
    source.error = DeskAuthError("expired")
    response = api.get("/api/views/metrics")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to build metrics view"}


def test_missing_credentials_are_not_exposed():
    api = TestClient(create_app())

    response = api.get("/api/agent-performance")
    assert response.status_code == 500
    assert response.json() == {"error": PERFORMANCE_ERROR}

    response = api.get("/api/views/pending")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to build pending view"}
    assert "DESK_CLIENT_ID" not in response.text


def test_dependency_errors_are_generic():
    def broken_source():
        raise DeskAuthError("Missing credentials: client_id (DESK_CLIENT_ID)")

    app = create_app()
    app.dependency_overrides[get_source] = broken_source
    response = TestClient(app).get("/api/views/archived")

    assert response.status_code == 500
    assert response.json() == {"error": UPSTREAM_ERROR}
