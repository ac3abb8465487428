"""x402 payment verifier.

Implements PaymentVerifier on top of the x402 wire format:
- the 402 challenge body lists accepted payment requirements
- clients attach proof in the base64 JSON ``X-PAYMENT`` header
- verified responses carry the settlement in ``X-PAYMENT-RESPONSE``

Settlement happens before the caller's handler runs, so no voucher is
ever minted for a payment that did not settle.
"""

import base64
import binascii
import json
from typing import Any

import structlog
from fastapi import Request

from paywall.application.payment_service import (
    Failed,
    Unpaid,
    VerificationOutcome,
    Verified,
)
from paywall.domain.value_objects import PaymentRequirement
from paywall.infrastructure.facilitator import X402_VERSION, FacilitatorClient

logger = structlog.get_logger()

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
SCHEME = "exact"


def requirement_to_dict(requirement: PaymentRequirement) -> dict[str, Any]:
    """Serialize a requirement as an x402 ``PaymentRequirements`` object."""
    extra: dict[str, Any] = {
        "symbol": requirement.asset.symbol,
        "decimals": requirement.asset_decimals,
    }
    if requirement.fee_payer:
        extra["feePayer"] = requirement.fee_payer

    return {
        "scheme": SCHEME,
        "network": requirement.network,
        "maxAmountRequired": requirement.atomic_amount,
        "resource": requirement.resource,
        "description": requirement.description,
        "mimeType": "application/json",
        "payTo": requirement.recipient_address,
        "maxTimeoutSeconds": requirement.max_timeout_seconds,
        "asset": requirement.asset_address,
        "extra": extra,
    }


def payment_required_body(
    requirement: PaymentRequirement, error: str | None = None
) -> dict[str, Any]:
    """Build the 402 challenge body."""
    return {
        "x402Version": X402_VERSION,
        "error": error or f"{PAYMENT_HEADER} header is required",
        "accepts": [requirement_to_dict(requirement)],
    }


def encode_header(data: dict[str, Any]) -> str:
    """Encode a JSON object as base64 for an x402 header."""
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


def decode_header(value: str) -> dict[str, Any]:
    """Decode a base64 JSON x402 header.

    Raises:
        ValueError: If the value is not base64-encoded JSON object.
    """
    try:
        raw = base64.b64decode(value, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Malformed {PAYMENT_HEADER} header") from e
    if not isinstance(data, dict):
        raise ValueError(f"Malformed {PAYMENT_HEADER} header")
    return data


class X402PaymentVerifier:
    """PaymentVerifier backed by an x402 facilitator."""

    def __init__(self, facilitator: FacilitatorClient) -> None:
        """Initialize verifier.

        Args:
            facilitator: Client for the facilitator's verify/settle API.
        """
        self._facilitator = facilitator

    async def verify(
        self, requirement: PaymentRequirement, request: Request
    ) -> VerificationOutcome:
        """Check the request's proof of payment.

        Args:
            requirement: What the caller must have paid.
            request: Inbound request.

        Returns:
            Unpaid, Verified or Failed.

        Raises:
            FacilitatorError: If the facilitator is unreachable.
        """
        header = request.headers.get(PAYMENT_HEADER)
        if not header:
            logger.info(
                "Payment challenge issued",
                resource=requirement.resource,
                atomic_amount=requirement.atomic_amount,
                asset=requirement.asset.symbol,
            )
            return Unpaid(challenge=payment_required_body(requirement))

        try:
            payload = decode_header(header)
        except ValueError as e:
            logger.info("Unreadable payment header", resource=requirement.resource)
            return Unpaid(challenge=payment_required_body(requirement, str(e)))

        if payload.get("scheme") != SCHEME or payload.get("network") != requirement.network:
            logger.info(
                "Payment for unsupported scheme or network",
                scheme=payload.get("scheme"),
                network=payload.get("network"),
            )
            return Unpaid(
                challenge=payment_required_body(
                    requirement, "No matching payment requirements"
                )
            )

        requirements = requirement_to_dict(requirement)

        verification = await self._facilitator.verify(payload, requirements)
        if not verification.is_valid:
            reason = verification.invalid_reason or "Payment verification failed"
            logger.warning(
                "Payment verification failed",
                reason=reason,
                payer=verification.payer,
            )
            return Failed(
                reason=reason,
                challenge=payment_required_body(requirement, reason),
            )

        settlement = await self._facilitator.settle(payload, requirements)
        if not settlement.success:
            reason = settlement.error_reason or "Payment settlement failed"
            logger.warning(
                "Payment settlement failed",
                reason=reason,
                payer=verification.payer,
            )
            return Failed(
                reason=reason,
                challenge=payment_required_body(requirement, reason),
            )

        receipt = settlement.to_dict()
        return Verified(
            receipt=receipt,
            payer=settlement.payer or verification.payer,
            response_headers={PAYMENT_RESPONSE_HEADER: encode_header(receipt)},
        )
