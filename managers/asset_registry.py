"""Asset registry: the reference store for committed media assets"""

import logging
import re
import threading
from typing import Dict, List, Optional

from models.asset import MediaAsset

logger = logging.getLogger("MediaServer")

# Reference key validation regex: e.g. "article-42-cover"
REFERENCE_KEY_REGEX = re.compile(r'^[a-z0-9][a-z0-9._-]{0,63}$')


def validate_reference_key(key: str) -> bool:
    return bool(REFERENCE_KEY_REGEX.match(key))


class AssetRegistry:
    """Tracks committed assets and which owner keys point at them.

    Re-processing never mutates an asset: the owner registers the new asset
    and then swaps its reference key over with ``set_reference``.
    """

    def __init__(self):
        self._assets: Dict[str, MediaAsset] = {}
        self._hash_to_asset_ids: Dict[str, List[str]] = {}  # For cache/dedup lookups
        self._references: Dict[str, str] = {}
        self._lock = threading.Lock()
        logger.info("Initialized AssetRegistry")

    def register(self, asset: MediaAsset) -> MediaAsset:
        """Store a committed asset.

        Raises:
            ValueError: If the asset is not committed or its id is already registered
        """
        if not asset.is_committed:
            raise ValueError(f"Only committed assets can be registered (asset {asset.id} is {asset.status.value})")
        with self._lock:
            if asset.id in self._assets:
                raise ValueError(f"Asset {asset.id} is already registered")
            self._assets[asset.id] = asset
            if asset.content_hash:
                self._hash_to_asset_ids.setdefault(asset.content_hash, []).append(asset.id)
        logger.debug(f"Registered asset {asset.id} (hash={asset.content_hash})")
        return asset

    def get_asset(self, asset_id: str) -> Optional[MediaAsset]:
        return self._assets.get(asset_id)

    def list_assets(self) -> List[MediaAsset]:
        with self._lock:
            return sorted(self._assets.values(), key=lambda asset: asset.created_at)

    def find_by_content_hash(self, content_hash: str) -> List[MediaAsset]:
        """Committed assets whose decoded pixels fingerprint to the same value"""
        with self._lock:
            asset_ids = list(self._hash_to_asset_ids.get(content_hash, []))
        return [self._assets[asset_id] for asset_id in asset_ids]

    def set_reference(self, key: str, asset_id: str) -> Optional[str]:
        """Point an owner key at an asset.

        Returns:
            The asset id the key pointed at before, if any

        Raises:
            ValueError: If the key is invalid or the asset is unknown
        """
        if not validate_reference_key(key):
            raise ValueError(
                f"Invalid reference key: '{key}'. "
                f"Must match regex: ^[a-z0-9][a-z0-9._-]{{0,63}}$"
            )
        with self._lock:
            if asset_id not in self._assets:
                raise ValueError(f"Asset {asset_id} is not registered")
            previous = self._references.get(key)
            self._references[key] = asset_id
        logger.info(f"Reference '{key}' -> {asset_id} (previous: {previous})")
        return previous

    def get_reference(self, key: str) -> Optional[MediaAsset]:
        asset_id = self._references.get(key)
        if asset_id:
            return self.get_asset(asset_id)
        return None
