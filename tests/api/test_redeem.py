"""Tests for voucher redemption."""

import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from paywall.domain.exceptions import VoucherNotFoundError
from paywall.domain.value_objects import Order
from paywall.infrastructure.container import Services


def _buy(client: TestClient, paid_headers: dict[str, str], order: dict) -> str:
    response = client.post("/dynamic-pay", json=order, headers=paid_headers)
    assert response.status_code == 200
    return response.json()["payment"]


class TestRedeem:
    """Tests for GET /redeem/{token}."""

    def test_round_trip(self, client: TestClient, paid_headers) -> None:
        """A paid order comes back unchanged."""
        order = {"price": 1.5, "asset": "USDC", "payload": {"item": "potion", "qty": 2}}
        token = _buy(client, paid_headers, order)

        response = client.get(f"/redeem/{token}")

        assert response.status_code == 200
        assert response.json() == {"order": order}

    def test_second_redeem_not_found(self, client: TestClient, paid_headers) -> None:
        """A voucher can only be redeemed once."""
        token = _buy(client, paid_headers, {"price": 1, "asset": "USDC"})

        first = client.get(f"/redeem/{token}")
        second = client.get(f"/redeem/{token}")

        assert first.status_code == 200
        assert second.status_code == 404
        assert second.json()["error_code"] == "VOUCHER_NOT_FOUND"

    def test_unknown_token_not_found(self, client: TestClient) -> None:
        """Garbage tokens are a plain 404."""
        response = client.get("/redeem/not-a-real-token")

        assert response.status_code == 404
        assert response.json()["error_code"] == "VOUCHER_NOT_FOUND"

    def test_used_and_unknown_tokens_look_identical(
        self, client: TestClient, paid_headers
    ) -> None:
        """Redeemed and never-issued tokens produce the same body."""
        token = _buy(client, paid_headers, {"price": 1, "asset": "USDC"})
        client.get(f"/redeem/{token}")

        used = client.get(f"/redeem/{token}").json()
        unknown = client.get(f"/redeem/{uuid4()}").json()

        used.pop("request_id")
        unknown.pop("request_id")
        assert used == unknown

    def test_fixed_price_order_redeemable(self, client: TestClient, paid_headers) -> None:
        """Orders bought on /pay redeem the same way."""
        response = client.post("/pay", json={"item": "map"}, headers=paid_headers)
        token = response.json()["payment"]

        assert client.get(f"/redeem/{token}").json() == {"order": {"item": "map"}}


class TestConcurrentRedeem:
    """Only one of several simultaneous redemptions may win."""

    @pytest.mark.asyncio
    async def test_exactly_one_winner(self, services: Services) -> None:
        """Two concurrent redeems of one token: one order, one not-found."""
        voucher = await services.vouchers.issue(Order(body={"price": 1, "asset": "USDC"}))

        results = await asyncio.gather(
            services.vouchers.redeem(voucher.token),
            services.vouchers.redeem(voucher.token),
            return_exceptions=True,
        )

        orders = [r for r in results if isinstance(r, Order)]
        misses = [r for r in results if isinstance(r, VoucherNotFoundError)]
        assert len(orders) == 1
        assert len(misses) == 1
