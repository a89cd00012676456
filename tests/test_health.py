"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status, version, and components fields
  - No authentication required
  - 503 "degraded" when a store cannot be reached
"""

from __future__ import annotations


def test_health_returns_200_with_components(api):
    resp = api.client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api):
    resp = api.client.get("/health", headers={})
    assert resp.status_code == 200


def test_health_reports_unreachable_database(api, monkeypatch):
    monkeypatch.setattr(api.care, "ping", lambda: False)
    resp = api.client.get("/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"


def test_docs_require_session(api):
    resp = api.client.get("/docs")
    assert resp.status_code == 401
    assert resp.json()["code"] == "no_token"


def test_docs_served_to_logged_in_user(api):
    _, headers = api.make_user("docs@example.com")
    resp = api.client.get("/docs", headers=headers)
    assert resp.status_code == 200
    assert "swagger" in resp.text.lower()
