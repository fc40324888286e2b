from __future__ import annotations

from typing import Iterable

from .errors import AssetNotWhitelisted
from .ledger import AssetId, is_native


class WhitelistRegistry:
    """Token assets approved for deposit. The native asset is always eligible."""

    def __init__(self, assets: Iterable[AssetId] = ()) -> None:
        self._assets: set[AssetId] = set(assets)

    def add(self, asset_id: AssetId) -> bool:
        """Add an asset; returns False when it was already present."""
        if asset_id in self._assets:
            return False
        self._assets.add(asset_id)
        return True

    def is_whitelisted(self, asset_id: str) -> bool:
        return is_native(asset_id) or asset_id in self._assets

    def require(self, asset_id: str) -> None:
        if not self.is_whitelisted(asset_id):
            raise AssetNotWhitelisted(asset_id=asset_id)

    def assets(self) -> list[AssetId]:
        return sorted(self._assets)

    def __contains__(self, asset_id: object) -> bool:
        return isinstance(asset_id, str) and self.is_whitelisted(asset_id)
