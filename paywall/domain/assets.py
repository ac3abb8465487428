"""Asset registry.

Static mapping from a currency symbol to its on-chain identity. Built once
at startup and never mutated; it is the only place that decides whether an
asset is supported.
"""

from collections.abc import Iterable

from paywall.domain.value_objects import AssetInfo


class AssetRegistry:
    """Read-only lookup of supported assets by symbol."""

    def __init__(self, assets: Iterable[AssetInfo]) -> None:
        """Initialize registry.

        Args:
            assets: Supported assets. Symbols must be unique.

        Raises:
            ValueError: If a symbol appears twice.
        """
        self._assets: dict[str, AssetInfo] = {}
        for asset in assets:
            if asset.symbol in self._assets:
                raise ValueError(f"Duplicate asset symbol: {asset.symbol}")
            self._assets[asset.symbol] = asset

    def lookup(self, symbol: str) -> AssetInfo | None:
        """Get asset by symbol.

        Args:
            symbol: Asset ticker, case-sensitive.

        Returns:
            AssetInfo if supported, None otherwise.
        """
        return self._assets.get(symbol)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def symbols(self) -> list[str]:
        """List supported symbols in registration order."""
        return list(self._assets)
