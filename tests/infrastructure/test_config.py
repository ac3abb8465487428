"""Tests for settings loading and wiring."""

import pytest
from pydantic import ValidationError

from paywall.domain.exceptions import InvalidPriceError
from paywall.infrastructure.config import AssetSettings, Settings
from paywall.infrastructure.container import build_services, build_voucher_store
from paywall.infrastructure.voucher_store import InMemoryVoucherStore, SqlVoucherStore
from paywall.infrastructure.x402 import X402PaymentVerifier
from tests.conftest import make_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of these tests."""
    for name in ("TREASURY_ADDRESS", "NETWORK", "FACILITATOR_URL", "PAY_PRICE"):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings validation."""

    @pytest.mark.parametrize(
        "missing", ["treasury_address", "network", "facilitator_url"]
    )
    def test_required_fields(self, missing: str) -> None:
        values = {
            "treasury_address": "Treasury",
            "network": "solana-devnet",
            "facilitator_url": "https://facilitator.example.com",
        }
        del values[missing]

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, **values)

        assert missing in str(exc_info.value)

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TREASURY_ADDRESS", "EnvTreasury")
        monkeypatch.setenv("NETWORK", "solana")
        monkeypatch.setenv("FACILITATOR_URL", "https://f.example.com/")

        settings = Settings(_env_file=None)

        assert settings.treasury_address == "EnvTreasury"
        assert settings.network == "solana"
        assert settings.facilitator_url == "https://f.example.com"

    def test_default_asset_must_be_supported(self) -> None:
        with pytest.raises(ValidationError, match="default_asset"):
            make_settings(default_asset="EURC")

    def test_assets_must_not_be_empty(self) -> None:
        with pytest.raises(ValidationError, match="at least one asset"):
            make_settings(supported_assets={})

    def test_decimals_bounded(self) -> None:
        with pytest.raises(ValidationError):
            AssetSettings(address="mint", decimals=19)

    def test_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(voucher_ttl_seconds=0)

    def test_frozen(self) -> None:
        settings = make_settings()
        with pytest.raises(ValidationError):
            settings.network = "mainnet"


class TestBuildServices:
    """Tests for service wiring."""

    def test_defaults_to_x402_and_memory(self) -> None:
        services = build_services(make_settings())

        assert isinstance(services.vouchers.store, InMemoryVoucherStore)
        assert services.facilitator is not None
        assert services.facilitator.base_url == "https://facilitator.example.com"
        assert isinstance(services.payments._verifier, X402PaymentVerifier)
        assert services.registry.symbols() == ["USDC"]

    def test_sql_store_when_database_configured(self) -> None:
        store = build_voucher_store(
            make_settings(database_url="sqlite+aiosqlite:///:memory:")
        )
        assert isinstance(store, SqlVoucherStore)

    def test_bad_flat_price_fails_at_startup(self) -> None:
        with pytest.raises(InvalidPriceError):
            build_services(make_settings(pay_price="free"))
