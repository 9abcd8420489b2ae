"""Tests for the HTTP trigger endpoints."""

import pytest
from conftest import FakeGateway, InMemoryDirectory, make_profile
from fastapi.testclient import TestClient

from app.reminders import api
from app.reminders.config import settings
from app.reminders.errors import ConfigurationError, DirectoryQueryError
from app.reminders.service import app


@pytest.fixture
def directory():
    return InMemoryDirectory([
        make_profile("u1", token="tok-1", schedules=[{"id": "breakfast", "enabled": True, "time": "08:00"}]),
    ])


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway, directory, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")
    app.dependency_overrides[api.gateway_dependency] = lambda: gateway
    app.dependency_overrides[api.directory_dependency] = lambda: directory
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy", "service": "reminders"}


@pytest.mark.parametrize("method", ["get", "post"])
def test_send_notifications_summary(client, method):
    response = getattr(client, method)("/api/send-notifications")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert set(body) >= {"success", "sent", "failed", "total", "time"}
    assert body["time"].endswith("Z")


def test_unsupported_method(client):
    response = client.put("/api/send-notifications")
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


class TestSecret:
    @pytest.fixture(autouse=True)
    def _secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    def test_missing_secret(self, client, directory):
        calls = []
        directory.query_users_with_token = lambda: calls.append(1) or []
        response = client.get("/api/send-notifications")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert calls == []

    def test_wrong_secret(self, client):
        assert client.get("/api/send-notifications", headers={"x-cron-secret": "nope"}).status_code == 401

    def test_header_secret(self, client):
        assert client.get("/api/send-notifications", headers={"x-cron-secret": "s3cret"}).status_code == 200

    def test_query_secret(self, client):
        assert client.post("/api/send-notifications?key=s3cret").status_code == 200


def test_gateway_not_configured(client):
    def no_gateway():
        raise ConfigurationError("FCM credentials not configured")

    app.dependency_overrides[api.gateway_dependency] = no_gateway
    response = client.get("/api/send-notifications")
    assert response.status_code == 500
    assert "FCM credentials not configured" in response.json()["error"]


def test_directory_failure(client, directory):
    def broken():
        raise DirectoryQueryError("firestore down")

    directory.query_users_with_token = broken
    response = client.get("/api/send-notifications")
    assert response.status_code == 500
    assert response.json() == {"error": "firestore down"}


def test_cleanup_tokens(client, gateway, directory):
    gateway.errors["tok-1"] = "registration-token-not-registered"
    response = client.post("/api/cleanup-tokens")
    assert response.status_code == 200
    assert response.json()["cleaned"] == 1
    assert directory.profiles["u1"].delivery_token is None


class TestTestNotification:
    def test_sent(self, client, gateway):
        response = client.post("/api/test-notification", json={"user_id": "u1"})
        assert response.status_code == 200
        assert response.json()["message"] == "Notification sent"
        assert gateway.sent[0][0] == "tok-1"

    def test_unknown_user(self, client):
        assert client.post("/api/test-notification", json={"user_id": "ghost"}).status_code == 404

    def test_no_token(self, client, directory):
        directory.profiles["u2"] = make_profile("u2", token=None)
        assert client.post("/api/test-notification", json={"user_id": "u2"}).status_code == 412

    def test_gateway_rejection(self, client, gateway):
        gateway.errors["tok-1"] = "registration-token-not-registered"
        response = client.post("/api/test-notification", json={"user_id": "u1"})
        assert response.status_code == 500
        assert "registration-token-not-registered" in response.json()["error"]


def test_unexpected_error_returns_json(gateway, directory, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")

    def broken():
        raise RuntimeError("firestore client unavailable")

    app.dependency_overrides[api.gateway_dependency] = lambda: gateway
    app.dependency_overrides[api.directory_dependency] = broken
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/send-notifications")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "firestore client unavailable"}
