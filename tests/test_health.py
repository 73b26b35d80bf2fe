"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status, version, and components fields
  - No authentication required
  - 503 with components.database == 'error' when the DB check fails
"""

from __future__ import annotations

import api.main


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _, _ = api_client
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == api.main.VERSION
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_failure(api_client, monkeypatch):
    """A failing database check turns into 503 / unhealthy."""
    client, _, _ = api_client
    monkeypatch.setattr(api.main, "database_ok", lambda engine: False)
    resp = client.get("/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "unhealthy"
    assert data["components"]["database"] == "error"
