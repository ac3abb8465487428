"""Application configuration.

Loads settings from environment variables. The recipient address, network
and facilitator URL have no defaults: a process started without them fails
at startup rather than on the first paid request.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class AssetSettings(BaseModel):
    """On-chain identity of a supported asset."""

    address: str = Field(..., min_length=1)
    decimals: int = Field(..., ge=0, le=18)

    model_config = {"frozen": True}


DEFAULT_ASSETS: dict[str, AssetSettings] = {
    "USDC": AssetSettings(
        address="4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
        decimals=6,
    ),
}


class Settings(BaseSettings):
    """Paywall settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Payment routing
    treasury_address: str = Field(..., min_length=1)
    network: str = Field(..., min_length=1)
    facilitator_url: str = Field(..., min_length=1)
    facilitator_timeout: float = 10.0

    # Pricing
    pay_price: str = "$0.01"
    default_asset: str = "USDC"
    supported_assets: dict[str, AssetSettings] = Field(
        default_factory=lambda: dict(DEFAULT_ASSETS)
    )
    max_timeout_seconds: int = Field(default=60, gt=0)
    fee_payer: str | None = None

    # Vouchers
    database_url: str | None = None
    voucher_ttl_seconds: int | None = Field(default=None, gt=0)

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator("facilitator_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the facilitator URL so endpoint paths can be appended."""
        return value.rstrip("/")

    @model_validator(mode="after")
    def check_default_asset(self) -> "Settings":
        """Flat prices are charged in the default asset, so it must be supported."""
        if not self.supported_assets:
            raise ValueError("supported_assets must contain at least one asset")
        if self.default_asset not in self.supported_assets:
            raise ValueError(
                f"default_asset '{self.default_asset}' is not in supported_assets"
            )
        return self
