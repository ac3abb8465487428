"""Voucher application service.

Mints vouchers for paid orders and redeems them exactly once.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from paywall.domain.exceptions import VoucherNotFoundError
from paywall.domain.value_objects import Order, Voucher, VoucherToken
from paywall.infrastructure.voucher_store import VoucherStore

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoucherService:
    """Issues and redeems one-time vouchers.

    Provides:
    - issue: store a paid order under a fresh UUIDv4 token
    - redeem: take the order back out, once
    - purge_expired: drop vouchers past their time-to-live
    """

    def __init__(
        self,
        store: VoucherStore,
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize service.

        Args:
            store: Voucher storage backend.
            ttl_seconds: Voucher lifetime; None keeps vouchers until redeemed.
            clock: Source of the current UTC time.
        """
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock

    @property
    def store(self) -> VoucherStore:
        return self._store

    async def issue(self, order: Order) -> Voucher:
        """Mint a voucher for a paid order.

        Args:
            order: The order exactly as received.

        Returns:
            The stored voucher.
        """
        now = self._clock()
        voucher = Voucher(
            token=str(VoucherToken.generate()),
            order=order,
            created_at=now,
            expires_at=now + self._ttl if self._ttl else None,
        )
        await self._store.put(voucher)

        logger.info(
            "Voucher issued",
            token=voucher.token,
            expires_at=voucher.expires_at.isoformat() if voucher.expires_at else None,
        )
        return voucher

    async def redeem(self, token: str) -> Order:
        """Redeem a voucher, consuming it.

        Args:
            token: Voucher token.

        Returns:
            The original order.

        Raises:
            VoucherNotFoundError: If the token is malformed, unknown,
                expired or already redeemed.
        """
        try:
            normalized = str(VoucherToken.from_string(token))
        except ValueError:
            logger.info("Redeem with malformed token")
            raise VoucherNotFoundError() from None

        order = await self._store.take_once(normalized, now=self._clock())
        if order is None:
            logger.info("Redeem miss", token=normalized)
            raise VoucherNotFoundError()

        logger.info("Voucher redeemed", token=normalized)
        return order

    async def purge_expired(self) -> int:
        """Remove expired vouchers.

        Returns:
            Number of vouchers removed.
        """
        if self._ttl is None:
            return 0
        removed = await self._store.purge_expired(now=self._clock())
        if removed:
            logger.info("Expired vouchers purged", count=removed)
        return removed
