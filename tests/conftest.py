"""Shared fixtures for paywall tests."""

from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from paywall.application.payment_service import (
    Failed,
    Unpaid,
    VerificationOutcome,
    Verified,
)
from paywall.domain.value_objects import PaymentRequirement
from paywall.infrastructure.config import AssetSettings, Settings
from paywall.infrastructure.container import Services, build_services
from paywall.infrastructure.voucher_store import InMemoryVoucherStore
from paywall.infrastructure.x402 import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    encode_header,
    payment_required_body,
)
from paywall.main import create_app

TREASURY = "TreasuryWa11et1111111111111111111111111111"
NETWORK = "solana-devnet"
FACILITATOR_URL = "https://facilitator.example.com"
USDC_ADDRESS = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"

VALID_PROOF = "valid-proof"
REJECTED_PROOF = "rejected-proof"


class FakePaymentVerifier:
    """Verifier that trusts a fixed proof string.

    - no header: Unpaid
    - VALID_PROOF: Verified
    - anything else: Failed
    """

    def __init__(self) -> None:
        self.calls: list[PaymentRequirement] = []

    async def verify(
        self, requirement: PaymentRequirement, request: Request
    ) -> VerificationOutcome:
        self.calls.append(requirement)
        proof = request.headers.get(PAYMENT_HEADER)
        if not proof:
            return Unpaid(challenge=payment_required_body(requirement))
        if proof != VALID_PROOF:
            return Failed(
                reason="invalid_signature",
                challenge=payment_required_body(requirement, "invalid_signature"),
            )
        receipt = {
            "success": True,
            "transaction": "5xTx",
            "network": requirement.network,
            "payer": "PayerWa11et",
        }
        return Verified(
            receipt=receipt,
            payer="PayerWa11et",
            response_headers={PAYMENT_RESPONSE_HEADER: encode_header(receipt)},
        )


def make_settings(**overrides: Any) -> Settings:
    """Build settings without reading the environment's .env file."""
    values: dict[str, Any] = {
        "treasury_address": TREASURY,
        "network": NETWORK,
        "facilitator_url": FACILITATOR_URL,
        "supported_assets": {
            "USDC": AssetSettings(address=USDC_ADDRESS, decimals=6),
        },
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Default test settings."""
    return make_settings()


@pytest.fixture
def verifier() -> FakePaymentVerifier:
    """Fake payment verifier."""
    return FakePaymentVerifier()


@pytest.fixture
def store() -> InMemoryVoucherStore:
    """Empty in-memory voucher store."""
    return InMemoryVoucherStore()


@pytest.fixture
def services(
    settings: Settings,
    verifier: FakePaymentVerifier,
    store: InMemoryVoucherStore,
) -> Services:
    """Services wired with the fake verifier and in-memory store."""
    return build_services(settings, verifier=verifier, store=store)


@pytest.fixture
def app(services: Services) -> FastAPI:
    """Application under test."""
    return create_app(services=services)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client for the application."""
    return TestClient(app)


@pytest.fixture
def paid_headers() -> dict[str, str]:
    """Headers carrying a proof the fake verifier accepts."""
    return {PAYMENT_HEADER: VALID_PROOF}
