"""Value objects for the domain layer.

Assets, prices, payment requirements, orders and vouchers. All are frozen
dataclasses compared by value.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Self
from uuid import UUID, uuid4


# ============================================================================
# Assets
# ============================================================================


@dataclass(frozen=True)
class AssetInfo:
    """A supported currency and its on-chain identity.

    Attributes:
        symbol: Ticker used by callers (e.g. "USDC").
        onchain_address: Mint or contract address of the token.
        decimals: Number of decimal places of one atomic unit, 0 to 18.
    """

    symbol: str
    onchain_address: str
    decimals: int

    def __post_init__(self) -> None:
        if not 0 <= self.decimals <= 18:
            raise ValueError(
                f"Asset {self.symbol} decimals must be in [0, 18], got {self.decimals}"
            )


# ============================================================================
# Prices
# ============================================================================


@dataclass(frozen=True)
class FlatPrice:
    """A pre-formatted price such as "$0.01" or 0.01."""

    value: str | int | float


@dataclass(frozen=True)
class DynamicPrice:
    """A decimal amount of a named asset."""

    amount: Decimal
    asset: str


PriceSpec = FlatPrice | DynamicPrice


@dataclass(frozen=True)
class PaymentRequirement:
    """A concrete payment the caller must prove before a voucher is minted.

    Attributes:
        atomic_amount: Amount in the asset's smallest unit, base-10 string.
        asset: The asset to be paid in.
        recipient_address: Address that must receive the payment.
        network: Network identifier understood by the facilitator.
        resource: URL of the gated route.
        description: Human-readable label for the payment.
        max_timeout_seconds: How long a signed payment stays acceptable.
        fee_payer: Optional settlement fee payer advertised to clients.
    """

    atomic_amount: str
    asset: AssetInfo
    recipient_address: str
    network: str
    resource: str
    description: str = ""
    max_timeout_seconds: int = 60
    fee_payer: str | None = None

    @property
    def asset_address(self) -> str:
        return self.asset.onchain_address

    @property
    def asset_decimals(self) -> int:
        return self.asset.decimals


# ============================================================================
# Orders and Vouchers
# ============================================================================


@dataclass(frozen=True)
class Order:
    """An accepted order, kept exactly as the caller sent it.

    The payload is opaque to the paywall; only ``price`` and ``asset`` are
    interpreted, and only on the dynamic route.
    """

    body: dict[str, Any]

    @property
    def price(self) -> Any:
        return self.body.get("price")

    @property
    def asset(self) -> Any:
        return self.body.get("asset")

    @property
    def payload(self) -> Any:
        return self.body.get("payload")


@dataclass(frozen=True)
class VoucherToken:
    """Strongly-typed voucher token (a random UUIDv4)."""

    value: UUID

    @classmethod
    def generate(cls) -> Self:
        """Generate a new voucher token.

        Returns:
            New VoucherToken with random UUID.
        """
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Create VoucherToken from string representation.

        Args:
            value: String UUID representation.

        Returns:
            VoucherToken instance.

        Raises:
            ValueError: If value is not a UUID.
        """
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Voucher:
    """A one-time-redeemable claim on a paid order."""

    token: str
    order: Order
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the voucher is past its expiry.

        Args:
            now: Reference time, defaults to the current UTC time.

        Returns:
            True if the voucher has an expiry and it has passed.
        """
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at
