"""Service wiring.

Builds every component from one Settings instance at startup. Request
handlers receive these objects through FastAPI dependencies and never
read configuration themselves.
"""

from dataclasses import dataclass

import structlog

from paywall.application.payment_service import (
    PaymentRouting,
    PaymentService,
    PaymentVerifier,
)
from paywall.application.voucher_service import VoucherService
from paywall.domain.assets import AssetRegistry
from paywall.domain.pricing import PriceResolver
from paywall.domain.value_objects import AssetInfo, FlatPrice
from paywall.infrastructure.config import Settings
from paywall.infrastructure.database import create_engine
from paywall.infrastructure.facilitator import FacilitatorClient
from paywall.infrastructure.voucher_store import (
    InMemoryVoucherStore,
    SqlVoucherStore,
    VoucherStore,
)
from paywall.infrastructure.x402 import X402PaymentVerifier

logger = structlog.get_logger()


@dataclass
class Services:
    """Everything a request handler may need."""

    settings: Settings
    registry: AssetRegistry
    payments: PaymentService
    vouchers: VoucherService
    pay_price: FlatPrice
    facilitator: FacilitatorClient | None = None

    async def close(self) -> None:
        """Release HTTP clients and database connections."""
        if self.facilitator is not None:
            await self.facilitator.close()
        await self.vouchers.store.close()


def build_asset_registry(settings: Settings) -> AssetRegistry:
    """Build the asset registry from configuration."""
    return AssetRegistry(
        AssetInfo(symbol=symbol, onchain_address=asset.address, decimals=asset.decimals)
        for symbol, asset in settings.supported_assets.items()
    )


def build_voucher_store(settings: Settings) -> VoucherStore:
    """Pick the voucher backend: SQL when a database URL is configured."""
    if settings.database_url:
        logger.info("Using SQL voucher store")
        return SqlVoucherStore(create_engine(settings.database_url, echo=settings.debug))
    logger.warning("No database_url configured, vouchers are kept in memory")
    return InMemoryVoucherStore()


def build_services(
    settings: Settings,
    verifier: PaymentVerifier | None = None,
    store: VoucherStore | None = None,
) -> Services:
    """Wire all services from settings.

    Args:
        settings: Validated settings.
        verifier: Override the x402 verifier (tests, alternative schemes).
        store: Override the voucher store.

    Returns:
        Services container.

    Raises:
        InvalidPriceError: If the configured flat price is unusable.
    """
    registry = build_asset_registry(settings)
    resolver = PriceResolver(registry)

    facilitator = None
    if verifier is None:
        facilitator = FacilitatorClient(
            settings.facilitator_url, timeout=settings.facilitator_timeout
        )
        verifier = X402PaymentVerifier(facilitator)

    pay_price = FlatPrice(value=settings.pay_price)
    # Fail at startup, not on the first /pay request.
    resolver.resolve(pay_price, settings.default_asset)

    routing = PaymentRouting(
        recipient_address=settings.treasury_address,
        network=settings.network,
        facilitator_url=settings.facilitator_url,
        default_asset=settings.default_asset,
        max_timeout_seconds=settings.max_timeout_seconds,
        fee_payer=settings.fee_payer,
    )

    return Services(
        settings=settings,
        registry=registry,
        payments=PaymentService(resolver, verifier, routing),
        vouchers=VoucherService(
            store or build_voucher_store(settings),
            ttl_seconds=settings.voucher_ttl_seconds,
        ),
        pay_price=pay_price,
        facilitator=facilitator,
    )
