"""Configuration tools for the media derivative server"""

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from managers.config_manager import ConfigManager
from models.config import UPLOAD_PROFILES


def register_configuration_tools(
    mcp: FastMCP,
    config_manager: ConfigManager
):
    """Register configuration tools with the MCP server"""

    @mcp.tool()
    def get_pipeline_config() -> dict:
        """Get the effective pipeline and server settings.

        Returns merged values from all sources (runtime, config file, env, hardcoded)
        plus the available upload policy profiles.
        """
        values = config_manager.get_all_values()
        values["upload_profiles"] = {
            name: {"max_bytes": policy.max_bytes, "allowed_mime_types": list(policy.allowed_mime_types)}
            for name, policy in UPLOAD_PROFILES.items()
        }
        return values

    @mcp.tool()
    def set_pipeline_config(
        pipeline: Optional[Dict[str, Any]] = None,
        persist: bool = False
    ) -> dict:
        """Set runtime pipeline settings.

        Args:
            pipeline: Settings to change (e.g., {"quality": 70, "breakpoints": [480, 960]})
            persist: If True, also write them to ~/.config/media-derivatives/config.json

        Returns:
            Success status and any validation errors.
        """
        if not pipeline:
            return {"success": False, "errors": ["No settings provided"]}

        result = config_manager.set_overrides("pipeline", pipeline)
        if "error" in result or "errors" in result:
            return {"success": False, "errors": result.get("errors", [result.get("error")])}

        if persist:
            persist_result = config_manager.persist_overrides("pipeline", pipeline)
            if "error" in persist_result:
                return {"success": False, "errors": [f"Failed to persist settings: {persist_result['error']}"]}

        return {"success": True, "updated": result["updated"]}
