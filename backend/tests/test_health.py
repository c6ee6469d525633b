"""Tests for service-level endpoints."""

from fastapi.testclient import TestClient

from vesseltrack.main import fastapi_app

client = TestClient(fastapi_app)


def test_health_endpoint() -> None:
    """Health is degraded while no collector is initialized."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "vesseltrack"
    assert data["collector"] is False
    assert data["redis_cache"] is False
    assert data["status"] == "degraded"


def test_root_endpoint() -> None:
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "VesselTrack AIS Service"
    assert "version" in data


def test_status_endpoint() -> None:
    response = client.get("/status")
    assert response.status_code == 200
    data = response.json()
    assert data["collector"] is None
    assert data["redis"] is None
    assert data["live"]["connected_clients"] == 0
