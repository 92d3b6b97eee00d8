"""Shared helper functions for tool implementations"""

import logging
from typing import Any, Dict, Optional

from managers.asset_registry import AssetRegistry
from managers.delivery import DeliveryDescriptorBuilder
from models.asset import MediaAsset

logger = logging.getLogger("MediaServer")


def register_and_build_response(
    asset: MediaAsset,
    asset_registry: AssetRegistry,
    descriptor_builder: DeliveryDescriptorBuilder,
    base_url: str,
    reference_key: Optional[str] = None
) -> Dict[str, Any]:
    """Register a pipeline result and build the tool response.

    Failed assets are reported but never registered, so no reference can
    end up pointing at a partial asset.

    Args:
        asset: Result of PipelineCoordinator.process()
        asset_registry: Reference store for committed assets
        descriptor_builder: Builds delivery URLs for the response
        base_url: Absolute URL prefix for delivery URLs
        reference_key: Optional owner key to point at the new asset

    Returns:
        Response dict with asset data and, when committed, delivery URLs
    """
    response_data = asset.to_dict()
    if not asset.is_committed:
        response_data["error"] = asset.error or "Processing failed"
        return response_data

    asset_registry.register(asset)
    if reference_key:
        try:
            previous = asset_registry.set_reference(reference_key, asset.id)
            response_data["reference_key"] = reference_key
            response_data["replaced_asset_id"] = previous
        except ValueError as e:
            # Asset stays registered; only the reference swap is refused
            logger.warning(f"Reference update refused for {asset.id}: {e}")
            response_data["reference_error"] = str(e)

    descriptor = descriptor_builder.describe(asset, base_url)
    response_data["delivery"] = descriptor.to_dict()

    similar = [other.id for other in asset_registry.find_by_content_hash(asset.content_hash) if other.id != asset.id]
    if similar:
        response_data["similar_asset_ids"] = similar

    return response_data
