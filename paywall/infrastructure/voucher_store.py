"""Voucher storage backends.

A voucher store maps an opaque token to an order and hands each order out
at most once. ``take_once`` is the only read: it returns the order and
removes the mapping in a single atomic step, so concurrent redemptions of
the same token see exactly one winner.
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from paywall.domain.value_objects import Order, Voucher
from paywall.infrastructure.database import create_session_factory, create_tables
from paywall.infrastructure.models import VoucherModel

logger = structlog.get_logger()


def _utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from drivers that drop tzinfo."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VoucherStore(Protocol):
    """Storage contract for vouchers."""

    async def put(self, voucher: Voucher) -> None:
        """Store a new voucher."""
        ...

    async def take_once(self, token: str, now: datetime | None = None) -> Order | None:
        """Atomically return and delete the order stored under ``token``."""
        ...

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete expired vouchers, returning how many were removed."""
        ...

    async def ping(self) -> bool:
        """Report whether the backend can serve requests."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...


# ============================================================================
# In-Memory Store
# ============================================================================


class InMemoryVoucherStore:
    """In-memory voucher store.

    Suitable for a single process; vouchers are lost on restart.
    """

    def __init__(self) -> None:
        self._vouchers: dict[str, Voucher] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._vouchers)

    def __contains__(self, token: object) -> bool:
        return token in self._vouchers

    async def put(self, voucher: Voucher) -> None:
        """Store a voucher."""
        async with self._lock:
            self._vouchers[voucher.token] = voucher

    async def take_once(self, token: str, now: datetime | None = None) -> Order | None:
        """Return and remove the order for ``token``.

        Expired vouchers are removed and reported as missing.
        """
        async with self._lock:
            voucher = self._vouchers.pop(token, None)
        if voucher is None:
            return None
        if voucher.is_expired(now):
            logger.info("Expired voucher discarded", token=token)
            return None
        return voucher.order

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed.
        """
        now = now or datetime.now(timezone.utc)
        async with self._lock:
            expired = [
                token
                for token, voucher in self._vouchers.items()
                if voucher.is_expired(now)
            ]
            for token in expired:
                del self._vouchers[token]
        return len(expired)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._vouchers.clear()


# ============================================================================
# SQL Store
# ============================================================================


class SqlVoucherStore:
    """Voucher store backed by a SQL database.

    ``take_once`` issues ``DELETE ... RETURNING`` so the read and the delete
    are one statement; the database row lock decides the single winner.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        """Initialize store.

        Args:
            engine: Async engine for the voucher database.
            session_factory: Optional session factory (built from engine if omitted).
        """
        self._engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def create_schema(self) -> None:
        """Create the vouchers table if it does not exist."""
        await create_tables(self._engine)

    async def put(self, voucher: Voucher) -> None:
        """Insert a voucher row."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    insert(VoucherModel).values(
                        token=voucher.token,
                        order=voucher.order.body,
                        created_at=voucher.created_at,
                        expires_at=voucher.expires_at,
                    )
                )

    async def take_once(self, token: str, now: datetime | None = None) -> Order | None:
        """Delete the row for ``token`` and return its order.

        Expired rows are deleted as well but reported as missing.
        """
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(VoucherModel)
                    .where(VoucherModel.token == token)
                    .returning(VoucherModel.order, VoucherModel.expires_at)
                )
                row = result.first()

        if row is None:
            return None

        expires_at = _utc(row.expires_at)
        if expires_at is not None and (now or datetime.now(timezone.utc)) >= expires_at:
            logger.info("Expired voucher discarded", token=token)
            return None
        return Order(body=row.order)

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete every expired voucher row.

        Returns:
            Number of rows removed.
        """
        now = now or datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(VoucherModel).where(
                        VoucherModel.expires_at.is_not(None),
                        VoucherModel.expires_at <= now,
                    )
                )
        return result.rowcount or 0

    async def ping(self) -> bool:
        """Run a trivial query against the database."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(select(1))
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Voucher database unreachable", error=str(e))
            return False
        return True

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()
