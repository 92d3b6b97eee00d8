"""Media processing tools for the media derivative server"""

import logging
from typing import Any, Dict, Optional

import requests
from mcp.server.fastmcp import FastMCP, Image as FastMCPImage

from managers.asset_registry import AssetRegistry
from managers.config_manager import ConfigManager
from managers.delivery import DeliveryDescriptorBuilder
from managers.intake import UploadTooLargeError, upload_from_path, upload_from_url
from managers.pipeline import PipelineCoordinator
from models.config import KIND_THUMBNAIL
from tools.helpers import register_and_build_response

logger = logging.getLogger("MediaServer")


def register_media_tools(
    mcp: FastMCP,
    coordinator: PipelineCoordinator,
    asset_registry: AssetRegistry,
    descriptor_builder: DeliveryDescriptorBuilder,
    config_manager: ConfigManager
):
    """Register media pipeline tools with the MCP server"""

    def _base_url(base_url: Optional[str]) -> str:
        return config_manager.get_value("server", "base_url", base_url)

    @mcp.tool()
    def process_image(
        path: str,
        mime_type: Optional[str] = None,
        original_filename: Optional[str] = None,
        profile: str = "general",
        reference_key: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> dict:
        """Run a local image through the derivative pipeline.

        Produces the optimized, WebP, thumbnail and responsive variants under
        the asset root. Either every variant is written or none is.

        Args:
            path: Path to a local image file (it is copied, never modified)
            mime_type: Declared MIME type (guessed from the filename if omitted)
            original_filename: Name to derive stored filenames from (defaults to the file's name)
            profile: Upload policy profile: "general" (10 MiB) or "cover" (5 MiB)
            reference_key: Optional owner key (e.g. "article-42-cover") to point at the new asset
            overrides: Optional per-call pipeline settings (e.g. {"quality": 70, "breakpoints": [640]})

        Returns:
            Asset record with variants and delivery URLs, or an error dict
        """
        try:
            policy = config_manager.get_upload_policy(profile)
            config = config_manager.get_pipeline_config(overrides)
            upload = upload_from_path(
                path,
                coordinator.store.incoming_dir,
                mime_type=mime_type,
                original_filename=original_filename,
            )
        except (ValueError, TypeError, OSError) as e:
            return {"error": str(e)}

        try:
            asset = coordinator.process(upload, config=config, policy=policy)
            return register_and_build_response(
                asset, asset_registry, descriptor_builder, _base_url(None), reference_key
            )
        except Exception as e:
            logger.exception(f"Failed to process image {path}")
            return {"error": f"Failed to process image: {e}"}

    @mcp.tool()
    def process_image_url(
        url: str,
        profile: str = "general",
        reference_key: Optional[str] = None
    ) -> dict:
        """Download an image over HTTP(S) and run it through the derivative pipeline.

        Args:
            url: http:// or https:// URL of the image
            profile: Upload policy profile: "general" (10 MiB) or "cover" (5 MiB)
            reference_key: Optional owner key to point at the new asset

        Returns:
            Asset record with variants and delivery URLs, or an error dict
        """
        if not url.startswith(("http://", "https://")):
            return {"error": f"Only http(s) URLs are supported, got: {url}"}
        try:
            policy = config_manager.get_upload_policy(profile)
            upload = upload_from_url(url, coordinator.store.incoming_dir, max_bytes=policy.max_bytes)
        except UploadTooLargeError as e:
            return {"error": str(e), "rejection": "too_large"}
        except (ValueError, requests.RequestException, OSError) as e:
            return {"error": f"Failed to fetch image: {e}"}

        try:
            asset = coordinator.process(upload, config=config_manager.get_pipeline_config(), policy=policy)
            return register_and_build_response(
                asset, asset_registry, descriptor_builder, _base_url(None), reference_key
            )
        except Exception as e:
            logger.exception(f"Failed to process image from {url}")
            return {"error": f"Failed to process image: {e}"}

    @mcp.tool()
    def get_media_asset(asset_id: Optional[str] = None, reference_key: Optional[str] = None) -> dict:
        """Look up a committed asset by id or by owner reference key."""
        if asset_id:
            asset = asset_registry.get_asset(asset_id)
        elif reference_key:
            asset = asset_registry.get_reference(reference_key)
        else:
            return {"error": "Provide asset_id or reference_key"}
        if not asset:
            return {"error": "Asset not found (registry is in-memory and resets on restart)"}
        return asset.to_dict()

    @mcp.tool()
    def list_media_assets() -> dict:
        """List committed assets registered in this session."""
        assets = asset_registry.list_assets()
        return {
            "assets": [
                {
                    "id": asset.id,
                    "original_filename": asset.original_filename,
                    "content_hash": asset.content_hash,
                    "created_at": asset.created_at.isoformat(),
                }
                for asset in assets
            ],
            "count": len(assets),
        }

    @mcp.tool()
    def describe_media_asset(asset_id: str, base_url: Optional[str] = None, alt: str = "") -> dict:
        """Build delivery URLs, srcset and <picture> markup for a committed asset.

        Args:
            asset_id: Asset ID returned by process_image
            base_url: Absolute URL prefix (defaults to the configured base URL)
            alt: Alt text for the generated <img>
        """
        asset = asset_registry.get_asset(asset_id)
        if not asset:
            return {"error": f"Asset {asset_id} not found"}
        descriptor = descriptor_builder.describe(asset, _base_url(base_url))
        result = descriptor.to_dict()
        result["picture_element"] = descriptor.picture_element(alt=alt)
        return result

    @mcp.tool()
    def view_thumbnail(asset_id: str):
        """View an asset's thumbnail inline in chat."""
        asset = asset_registry.get_asset(asset_id)
        if not asset:
            return {"error": f"Asset {asset_id} not found"}
        thumbnail = asset.variants.get(KIND_THUMBNAIL)
        if not thumbnail:
            return {"error": f"Asset {asset_id} has no thumbnail variant"}
        try:
            path = coordinator.store.path_for(thumbnail.kind, thumbnail.filename)
            return FastMCPImage(data=path.read_bytes(), format="jpeg")
        except (OSError, ValueError) as e:
            logger.exception(f"Failed to read thumbnail for {asset_id}")
            return {"error": f"Failed to read thumbnail: {e}"}
