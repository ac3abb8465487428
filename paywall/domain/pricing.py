"""Price resolution.

Validates incoming price specifications and converts decimal prices into
integer atomic units. All arithmetic is done with ``Decimal`` so the amount
quoted to the caller and the amount sent to the facilitator never drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from paywall.domain.assets import AssetRegistry
from paywall.domain.exceptions import (
    InvalidPriceError,
    MalformedBodyError,
    UnsupportedAssetError,
)
from paywall.domain.value_objects import (
    AssetInfo,
    DynamicPrice,
    FlatPrice,
    Order,
    PriceSpec,
)

CENT = Decimal("0.01")

# Enough digits for 18-decimal assets with very large amounts.
_PRECISION = 78

# Prices at or above this are refused before any arithmetic.
MAX_PRICE = Decimal("1e18")


def _to_decimal(value: Any) -> Decimal:
    """Parse a JSON number or numeric string into a finite Decimal."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidPriceError(
            "Price must be a number or numeric string",
            details={"price": value},
        )
    try:
        # str() of a float is its shortest round-tripping repr
        amount = Decimal(value.strip() if isinstance(value, str) else str(value))
    except InvalidOperation as e:
        raise InvalidPriceError(
            f"Price is not a number: {value!r}",
            details={"price": value},
        ) from e
    if not amount.is_finite():
        raise InvalidPriceError(
            f"Price must be finite: {value!r}",
            details={"price": value},
        )
    if abs(amount) >= MAX_PRICE:
        raise InvalidPriceError(
            f"Price is too large: {value!r}",
            details={"price": value, "max_price": str(MAX_PRICE)},
        )
    return amount


def round_price(amount: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places, half up.

    Raises:
        InvalidPriceError: If the amount does not fit the working precision.
    """
    try:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidPriceError(
            "Price cannot be rounded", details={"price": str(amount)}
        ) from e


def scale_to_atomic(amount: Decimal, decimals: int) -> str:
    """Convert a decimal amount to integer atomic units.

    Args:
        amount: Amount in whole units of the asset.
        decimals: Asset precision.

    Returns:
        ``round(amount * 10**decimals)`` as a base-10 string.

    Raises:
        InvalidPriceError: If the scaled amount does not fit the working precision.
    """
    try:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            scaled = amount.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidPriceError(
            "Price cannot be converted to atomic units",
            details={"price": str(amount), "decimals": decimals},
        ) from e
    return str(int(scaled))


def parse_money(value: str | int | float) -> Decimal:
    """Parse a flat price like "$0.01", "1,000.50" or 0.25.

    Raises:
        InvalidPriceError: If the value is not a positive amount.
    """
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "").strip()
    amount = _to_decimal(value)
    if amount <= 0:
        raise InvalidPriceError(
            f"Price must be positive: {value!r}",
            details={"price": value},
        )
    return amount


class PriceResolver:
    """Validates price specifications against the asset registry."""

    def __init__(self, registry: AssetRegistry) -> None:
        """Initialize resolver.

        Args:
            registry: Supported assets.
        """
        self._registry = registry

    @property
    def registry(self) -> AssetRegistry:
        return self._registry

    def _require_asset(self, asset: Any) -> AssetInfo:
        info = self._registry.lookup(asset) if isinstance(asset, str) else None
        if info is None:
            raise UnsupportedAssetError(asset, self._registry.symbols())
        return info

    def validate(self, raw: Any) -> PriceSpec:
        """Validate a raw price value.

        A string or number is a flat price and is accepted as is; an object
        must be ``{amount, asset}`` with a supported asset and an amount of
        at least 0.01 after rounding.

        Args:
            raw: Price value from a request or route configuration.

        Returns:
            FlatPrice or DynamicPrice.

        Raises:
            InvalidPriceError: If the shape is wrong or the asset unsupported.
        """
        if raw is None:
            raise InvalidPriceError("Price is required")
        if isinstance(raw, bool):
            raise InvalidPriceError("Invalid price format", details={"price": raw})
        if isinstance(raw, (str, int, float)):
            return FlatPrice(value=raw)
        if isinstance(raw, dict):
            if raw.get("amount") is None:
                raise InvalidPriceError("Price is required", details={"price": raw})
            self._require_asset(raw.get("asset"))
            amount = _to_decimal(raw["amount"])
            if round_price(amount) <= 0:
                raise InvalidPriceError(
                    "Price must be at least 0.01",
                    details={"price": raw["amount"]},
                )
            return DynamicPrice(amount=amount, asset=raw["asset"])
        raise InvalidPriceError("Invalid price format", details={"price": raw})

    def parse_dynamic_order(self, body: Any) -> tuple[Order, PriceSpec]:
        """Validate a ``/dynamic-pay`` body.

        ``price`` and ``asset`` are checked by ``validate`` as a dynamic price.

        Args:
            body: Decoded JSON body.

        Returns:
            The order (body kept verbatim) and its dynamic price.

        Raises:
            MalformedBodyError: If the body is not a JSON object.
            InvalidPriceError: If price is missing, malformed or non-positive,
                the asset is unsupported, or payload is not an object.
        """
        if not isinstance(body, dict):
            raise MalformedBodyError("Order must be a JSON object")
        if "payload" in body and not isinstance(body["payload"], dict):
            raise InvalidPriceError(
                "Payload must be a JSON object",
                details={"payload": body["payload"]},
            )

        spec = self.validate({"amount": body.get("price"), "asset": body.get("asset")})
        return Order(body=body), spec

    def to_atomic_amount(self, amount: Decimal, asset: str) -> str:
        """Convert a dynamic price to atomic units.

        The amount is first rounded to 2 decimal places.

        Args:
            amount: Decimal price.
            asset: Supported asset symbol.

        Returns:
            Integer atomic amount as a base-10 string.

        Raises:
            UnsupportedAssetError: If the asset is not in the registry.
        """
        info = self._require_asset(asset)
        return scale_to_atomic(round_price(amount), info.decimals)

    def resolve(self, spec: PriceSpec, default_asset: str) -> tuple[str, AssetInfo]:
        """Resolve a price specification to an atomic amount and asset.

        Flat prices are charged in ``default_asset`` at full precision.

        Args:
            spec: Validated price.
            default_asset: Asset symbol used for flat prices.

        Returns:
            Tuple of (atomic amount, asset).
        """
        if isinstance(spec, DynamicPrice):
            return self.to_atomic_amount(spec.amount, spec.asset), self._require_asset(spec.asset)

        info = self._require_asset(default_asset)
        return scale_to_atomic(parse_money(spec.value), info.decimals), info
