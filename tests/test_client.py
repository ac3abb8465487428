"""Tests for the paywall HTTP client against the real application."""

from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request

from paywall.application.payment_service import (
    Failed,
    Unpaid,
    VerificationOutcome,
    Verified,
)
from paywall.client import PaymentReceipt, PaywallClient, PaywallClientError, round_price
from paywall.domain.exceptions import (
    InvalidPriceError,
    PaymentVerificationError,
    VoucherNotFoundError,
)
from paywall.domain.value_objects import PaymentRequirement
from paywall.infrastructure.x402 import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    decode_header,
    encode_header,
    payment_required_body,
)


class SignatureVerifier:
    """Accepts x402 payloads signed "ok" for the exact amount required."""

    async def verify(
        self, requirement: PaymentRequirement, request: Request
    ) -> VerificationOutcome:
        header = request.headers.get(PAYMENT_HEADER)
        if not header:
            return Unpaid(challenge=payment_required_body(requirement))
        payload = decode_header(header)["payload"]
        if payload.get("signature") != "ok" or payload.get("amount") != (
            requirement.atomic_amount
        ):
            return Failed(
                reason="invalid_signature",
                challenge=payment_required_body(requirement, "invalid_signature"),
            )
        receipt = {"success": True, "transaction": "5xTx", "network": requirement.network}
        return Verified(
            receipt=receipt,
            response_headers={PAYMENT_RESPONSE_HEADER: encode_header(receipt)},
        )


class FakeSigner:
    """Signs whatever it is asked to pay."""

    def __init__(self, signature: str = "ok") -> None:
        self.signature = signature
        self.requests: list[dict[str, Any]] = []

    async def create_payment(self, requirements: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(requirements)
        return {
            "x402Version": 1,
            "scheme": requirements["scheme"],
            "network": requirements["network"],
            "payload": {
                "signature": self.signature,
                "amount": requirements["maxAmountRequired"],
            },
        }


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


def bind(paywall: PaywallClient, app: FastAPI) -> PaywallClient:
    paywall._client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    )
    return paywall


@pytest_asyncio.fixture
async def paywall(app: FastAPI, signer: FakeSigner) -> AsyncIterator[PaywallClient]:
    client = bind(PaywallClient("http://test", signer=signer), app)
    yield client
    await client.close()


class TestRoundPrice:
    """Tests for client-side price rounding."""

    def test_rounds_to_cents(self) -> None:
        order = {"price": 61.234567, "asset": "USDC", "payload": {}}
        assert round_price(order) == {"price": 61.23, "asset": "USDC", "payload": {}}

    def test_leaves_non_numbers(self) -> None:
        assert round_price({"price": "1.239"}) == {"price": "1.239"}
        assert round_price({"price": True}) == {"price": True}

    def test_does_not_mutate(self) -> None:
        order = {"price": 1.005}
        round_price(order)
        assert order == {"price": 1.005}


class TestPayAndRedeem:
    """End-to-end flows through the client."""

    @pytest.mark.asyncio
    async def test_pay_order_then_redeem(
        self, paywall: PaywallClient, signer: FakeSigner
    ) -> None:
        order = {"price": 61.234567, "asset": "USDC", "payload": {"itemType": "Pizza"}}

        receipt = await paywall.pay_order(order)

        assert isinstance(receipt, PaymentReceipt)
        assert receipt.settlement == {
            "success": True,
            "transaction": "5xTx",
            "network": "solana-devnet",
        }
        assert signer.requests[0]["maxAmountRequired"] == "61230000"
        assert await paywall.redeem(receipt.token) == {
            "price": 61.23,
            "asset": "USDC",
            "payload": {"itemType": "Pizza"},
        }

    @pytest.mark.asyncio
    async def test_pay_fixed(self, paywall: PaywallClient, signer: FakeSigner) -> None:
        receipt = await paywall.pay_fixed({"item": "sword"})

        assert signer.requests[0]["maxAmountRequired"] == "10000"
        assert await paywall.redeem(receipt.token) == {"item": "sword"}

    @pytest.mark.asyncio
    async def test_second_redeem_not_found(self, paywall: PaywallClient) -> None:
        receipt = await paywall.pay_fixed({"item": "sword"})
        await paywall.redeem(receipt.token)

        with pytest.raises(VoucherNotFoundError):
            await paywall.redeem(receipt.token)

    @pytest.mark.asyncio
    async def test_max_amount_guard(self, app: FastAPI, signer: FakeSigner) -> None:
        paywall = bind(PaywallClient("http://test", signer=signer, max_amount=1_000_000), app)

        with pytest.raises(PaymentVerificationError, match="exceeds"):
            await paywall.pay_order({"price": 2, "asset": "USDC", "payload": {}})

        assert signer.requests == []
        await paywall.close()

    @pytest.mark.asyncio
    async def test_rejected_signature(self, app: FastAPI) -> None:
        paywall = bind(PaywallClient("http://test", signer=FakeSigner("bad")), app)

        with pytest.raises(PaymentVerificationError, match="invalid_signature"):
            await paywall.pay_fixed({"item": "sword"})
        await paywall.close()

    @pytest.mark.asyncio
    async def test_no_signer(self, app: FastAPI) -> None:
        paywall = bind(PaywallClient("http://test"), app)

        with pytest.raises(PaymentVerificationError, match="no signer"):
            await paywall.pay_fixed({"item": "sword"})
        await paywall.close()

    @pytest.mark.asyncio
    async def test_invalid_price_mapped(self, paywall: PaywallClient) -> None:
        with pytest.raises(InvalidPriceError):
            await paywall.pay_order({"price": 1, "asset": "XYZ", "payload": {}})


class TestTransportErrors:
    """Tests for transport failure handling."""

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        paywall = PaywallClient("http://paywall.invalid")

        with patch.object(paywall, "_get_client", new_callable=AsyncMock) as get_client:
            http_client = AsyncMock()
            http_client.request = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
            get_client.return_value = http_client

            with pytest.raises(PaywallClientError) as exc_info:
                await paywall.redeem("token")

            assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_non_json_response(self) -> None:
        paywall = PaywallClient("http://paywall.invalid")
        response = MagicMock()
        response.status_code = 500
        response.json.side_effect = ValueError("not json")

        with patch.object(paywall, "_get_client", new_callable=AsyncMock) as get_client:
            http_client = AsyncMock()
            http_client.request = AsyncMock(return_value=response)
            get_client.return_value = http_client

            with pytest.raises(PaywallClientError, match="Unexpected response body"):
                await paywall.redeem("token")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["lots", None, "1.5"])
    async def test_malformed_challenge_amount(self, amount: Any) -> None:
        """A challenge amount that is not an integer is a client error."""
        signer = FakeSigner()
        paywall = PaywallClient("http://paywall.invalid", signer=signer)
        response = MagicMock()
        response.status_code = 402
        response.json.return_value = {
            "x402Version": 1,
            "error": "X-PAYMENT header is required",
            "accepts": [{"scheme": "exact", "maxAmountRequired": amount}],
        }

        with patch.object(paywall, "_get_client", new_callable=AsyncMock) as get_client:
            http_client = AsyncMock()
            http_client.request = AsyncMock(return_value=response)
            get_client.return_value = http_client

            with pytest.raises(PaywallClientError, match="Malformed payment amount") as exc_info:
                await paywall.pay_fixed({"item": "sword"})

        assert exc_info.value.status_code == 402
        assert signer.requests == []
