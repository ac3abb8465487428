"""Payment gating application service.

Two phases per paid request:
- derive a concrete PaymentRequirement from route config or request body
- hand it, with the inbound request, to a PaymentVerifier

The verifier decides between Unpaid, Verified and Failed. Only a Verified
outcome lets the caller run the voucher-minting handler.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from fastapi import Request

from paywall.domain.pricing import PriceResolver, round_price
from paywall.domain.value_objects import (
    AssetInfo,
    DynamicPrice,
    PaymentRequirement,
    PriceSpec,
)

logger = structlog.get_logger()


# ============================================================================
# Verification Outcomes
# ============================================================================


@dataclass
class Unpaid:
    """No usable proof was attached; the challenge tells the client what to pay."""

    challenge: dict[str, Any]


@dataclass
class Verified:
    """Proof was verified and settled by the facilitator."""

    receipt: dict[str, Any]
    payer: str | None = None
    response_headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Failed:
    """Proof was attached but rejected."""

    reason: str
    challenge: dict[str, Any]


VerificationOutcome = Unpaid | Verified | Failed


class PaymentVerifier(Protocol):
    """Decides whether a request carries proof of a required payment."""

    async def verify(
        self, requirement: PaymentRequirement, request: Request
    ) -> VerificationOutcome:
        """Verify the request against the requirement."""
        ...


# ============================================================================
# Payment Service
# ============================================================================


@dataclass(frozen=True)
class PaymentRouting:
    """Process-wide payment destination, resolved once at startup."""

    recipient_address: str
    network: str
    facilitator_url: str
    default_asset: str
    max_timeout_seconds: int = 60
    fee_payer: str | None = None


class PaymentService:
    """Builds payment requirements and runs the verifier on them."""

    def __init__(
        self,
        resolver: PriceResolver,
        verifier: PaymentVerifier,
        routing: PaymentRouting,
    ) -> None:
        """Initialize service.

        Args:
            resolver: Price resolver bound to the asset registry.
            verifier: Payment verifier implementation.
            routing: Recipient, network and facilitator settings.
        """
        self._resolver = resolver
        self._verifier = verifier
        self._routing = routing

    @property
    def resolver(self) -> PriceResolver:
        return self._resolver

    def derive_requirement(
        self,
        price: PriceSpec,
        resource: str,
        description: str = "",
    ) -> PaymentRequirement:
        """Turn a validated price into a concrete payment requirement.

        Args:
            price: Flat or dynamic price.
            resource: URL of the gated route.
            description: Human-readable payment label.

        Returns:
            PaymentRequirement for the verifier.

        Raises:
            InvalidPriceError: If the price cannot be resolved.
        """
        atomic_amount, asset = self._resolver.resolve(price, self._routing.default_asset)
        return self._build(atomic_amount, asset, resource, description)

    def _build(
        self,
        atomic_amount: str,
        asset: AssetInfo,
        resource: str,
        description: str,
    ) -> PaymentRequirement:
        requirement = PaymentRequirement(
            atomic_amount=atomic_amount,
            asset=asset,
            recipient_address=self._routing.recipient_address,
            network=self._routing.network,
            resource=resource,
            description=description,
            max_timeout_seconds=self._routing.max_timeout_seconds,
            fee_payer=self._routing.fee_payer,
        )
        logger.info(
            "Payment requirement derived",
            atomic_amount=atomic_amount,
            asset=asset.symbol,
            recipient=requirement.recipient_address,
            network=requirement.network,
            facilitator=self._routing.facilitator_url,
        )
        return requirement

    def describe(self, price: PriceSpec) -> str:
        """Human-readable label matching the amount that will be charged."""
        if isinstance(price, DynamicPrice):
            return f"Pay {round_price(price.amount)} {price.asset}"
        return f"Pay {price.value} {self._routing.default_asset}"

    async def verify(
        self, requirement: PaymentRequirement, request: Request
    ) -> VerificationOutcome:
        """Run the verifier.

        Args:
            requirement: Requirement derived for this request.
            request: Inbound request, possibly carrying proof.

        Returns:
            The verifier's outcome.

        Raises:
            FacilitatorError: If the facilitator is unreachable.
        """
        return await self._verifier.verify(requirement, request)
