"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status and version fields
  - No authentication required, and a bad credential does not break it
"""

from __future__ import annotations

from api.main import __version__


def test_health_returns_200_with_version(api_client):
    client, _, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": __version__}


def test_health_ignores_credentials(api_client):
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 200
