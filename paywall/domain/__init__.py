"""Domain layer module.

Contains the asset registry, price resolution, order lifecycle and the
value objects shared by every other layer.
"""

from paywall.domain.assets import AssetRegistry
from paywall.domain.exceptions import (
    DomainError,
    FacilitatorError,
    InvalidPriceError,
    InvalidStateTransitionError,
    MalformedBodyError,
    PaymentVerificationError,
    UnsupportedAssetError,
    VoucherNotFoundError,
)
from paywall.domain.pricing import PriceResolver
from paywall.domain.state_machines import OrderLifecycle, OrderStatus
from paywall.domain.value_objects import (
    AssetInfo,
    DynamicPrice,
    FlatPrice,
    Order,
    PaymentRequirement,
    PriceSpec,
    Voucher,
    VoucherToken,
)

__all__ = [
    "AssetInfo",
    "AssetRegistry",
    "DomainError",
    "DynamicPrice",
    "FacilitatorError",
    "FlatPrice",
    "InvalidPriceError",
    "InvalidStateTransitionError",
    "MalformedBodyError",
    "Order",
    "OrderLifecycle",
    "OrderStatus",
    "PaymentRequirement",
    "PaymentVerificationError",
    "PriceResolver",
    "PriceSpec",
    "UnsupportedAssetError",
    "Voucher",
    "VoucherNotFoundError",
    "VoucherToken",
]
