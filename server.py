import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from managers.asset_registry import AssetRegistry
from managers.asset_store import AssetStore
from managers.config_manager import ConfigManager
from managers.delivery import DeliveryDescriptorBuilder
from managers.pipeline import PipelineCoordinator
from tools.configuration import register_configuration_tools
from tools.media import register_media_tools

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("MediaServer")

config_manager = ConfigManager()
asset_root = Path(config_manager.get_value("server", "asset_root")).expanduser()
asset_store = AssetStore(asset_root)
coordinator = PipelineCoordinator(asset_store)
asset_registry = AssetRegistry()
descriptor_builder = DeliveryDescriptorBuilder()


class AppContext:
    def __init__(self, coordinator: PipelineCoordinator, asset_registry: AssetRegistry):
        self.coordinator = coordinator
        self.asset_registry = asset_registry


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle"""
    logger.info("Starting media derivative server lifecycle...")
    try:
        asset_store.ensure_layout()
        logger.info(f"Asset store ready at {asset_store.root}")
        yield AppContext(coordinator=coordinator, asset_registry=asset_registry)
    finally:
        # Leftover staged uploads are from interrupted calls
        leftovers = list(asset_store.incoming_dir.glob("*.upload"))
        for leftover in leftovers:
            asset_store.discard_source(leftover)
        logger.info(f"Shutting down media derivative server ({len(leftovers)} staged uploads discarded)")


# Initialize FastMCP with lifespan
mcp = FastMCP(
    "Media_Derivative_Server",
    lifespan=app_lifespan,
    port=int(config_manager.get_value("server", "port")),
)

register_media_tools(mcp, coordinator, asset_registry, descriptor_builder, config_manager)
register_configuration_tools(mcp, config_manager)

if __name__ == "__main__":
    mcp.run(transport="streamable-http")
