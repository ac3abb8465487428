"""SQLAlchemy models for database tables."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from paywall.infrastructure.database import Base


class VoucherModel(Base):
    """Voucher model for database persistence.

    A row exists from the moment a payment settles until the voucher is
    redeemed; redemption deletes it.
    """

    __tablename__ = "vouchers"

    token = Column(String(36), primary_key=True)
    order = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
