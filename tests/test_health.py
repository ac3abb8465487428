"""Tests for identity, liveness and readiness endpoints."""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from paywall.infrastructure.container import Services


def test_root_identifies_service(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.text == "Welcome to the Dory X402 API"


def test_health_reports_network(client: TestClient) -> None:
    """Liveness answers with service identity and network."""
    data = client.get("/health").json()

    assert data["status"] == "healthy"
    assert data["service"] == "dory-paywall"
    assert data["network"] == "solana-devnet"
    assert "version" in data


def test_ready_with_memory_store(client: TestClient) -> None:
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "voucher_store": "memory"}


def test_not_ready_when_store_unreachable(client: TestClient, services: Services) -> None:
    """A store that fails its ping makes the service unready."""
    with patch.object(
        services.vouchers.store, "ping", new=AsyncMock(return_value=False)
    ):
        response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"
