"""Manager classes for the media derivative server"""

from managers.asset_registry import AssetRegistry
from managers.asset_store import AssetStore
from managers.config_manager import ConfigManager
from managers.delivery import DeliveryDescriptorBuilder
from managers.derivative_generator import DerivativeGenerator
from managers.pipeline import PipelineCoordinator

__all__ = [
    "AssetRegistry",
    "AssetStore",
    "ConfigManager",
    "DeliveryDescriptorBuilder",
    "DerivativeGenerator",
    "PipelineCoordinator",
]
