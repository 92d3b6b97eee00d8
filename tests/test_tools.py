"""Tests for the MCP tool functions, called directly"""

import pytest
from mcp.server.fastmcp import Image as FastMCPImage

from conftest import write_image
from managers.asset_registry import AssetRegistry
from managers.config_manager import ENV_VARIABLES, ConfigManager
from managers.delivery import DeliveryDescriptorBuilder
from tools.configuration import register_configuration_tools
from tools.media import register_media_tools


class RecordingMCP:
    """Stands in for FastMCP and keeps the registered tool functions"""

    def __init__(self):
        self.tools = {}

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn
        return decorator


@pytest.fixture
def tools(coordinator, tmp_path, monkeypatch):
    for variable in ENV_VARIABLES:
        monkeypatch.delenv(variable, raising=False)
    mcp = RecordingMCP()
    config_manager = ConfigManager(config_file=tmp_path / "config.json")
    register_media_tools(mcp, coordinator, AssetRegistry(), DeliveryDescriptorBuilder(), config_manager)
    register_configuration_tools(mcp, config_manager)
    return mcp.tools


class TestMediaTools:
    """Tests for media tools"""

    def test_process_image(self, tools, tmp_path):
        """A local file is processed, registered and described"""
        source = write_image(tmp_path / "Cover Art.jpg", size=(1600, 1200))

        result = tools["process_image"](str(source), overrides={"breakpoints": [640]})

        assert result["status"] == "committed"
        assert set(result["variants"]) == {"optimized", "webcodec", "thumbnail", "responsive_640w"}
        assert result["delivery"]["fallback_url"].startswith("http://localhost:5000/uploads/optimized/cover-art_opt_")
        assert source.exists()
        assert tools["get_media_asset"](asset_id=result["id"])["id"] == result["id"]

    def test_process_image_reference_swap(self, tools, tmp_path):
        """Re-processing under a reference key reports the replaced asset"""
        source = write_image(tmp_path / "cover.jpg", size=(400, 300))
        first = tools["process_image"](str(source), profile="cover", reference_key="article-42-cover")
        second = tools["process_image"](str(source), profile="cover", reference_key="article-42-cover")

        assert second["replaced_asset_id"] == first["id"]
        assert second["similar_asset_ids"] == [first["id"]]
        assert tools["get_media_asset"](reference_key="article-42-cover")["id"] == second["id"]

    def test_process_image_rejected(self, tools, tmp_path):
        """Rejected uploads come back as errors and are not registered"""
        source = tmp_path / "notes.png"
        source.write_bytes(b"not really a png")

        result = tools["process_image"](str(source))

        assert result["status"] == "failed"
        assert result["rejection"] == "undecodable"
        assert "error" in result
        assert tools["list_media_assets"]()["count"] == 0

    def test_process_image_missing_file(self, tools, tmp_path):
        """Missing paths are reported, not raised"""
        assert "error" in tools["process_image"](str(tmp_path / "missing.jpg"))

    def test_process_image_bad_overrides(self, tools, tmp_path):
        """Invalid per-call settings are reported"""
        source = write_image(tmp_path / "a.jpg", size=(100, 100))
        assert "error" in tools["process_image"](str(source), overrides={"quality": 0})

    def test_process_image_url_scheme(self, tools):
        """Only http(s) URLs are fetched"""
        assert "error" in tools["process_image_url"]("file:///etc/passwd")

    def test_describe_media_asset(self, tools, tmp_path):
        """Descriptor includes picture markup and honours base_url"""
        source = write_image(tmp_path / "a.jpg", size=(800, 600))
        asset_id = tools["process_image"](str(source))["id"]

        result = tools["describe_media_asset"](asset_id, base_url="https://cdn.example.com", alt="A photo")

        assert result["fallback_url"].startswith("https://cdn.example.com/uploads/optimized/")
        assert 'alt="A photo"' in result["picture_element"]
        assert "error" in tools["describe_media_asset"]("missing")

    def test_view_thumbnail(self, tools, tmp_path):
        """Thumbnails are returned as inline images"""
        source = write_image(tmp_path / "a.jpg", size=(800, 600))
        asset_id = tools["process_image"](str(source))["id"]

        assert isinstance(tools["view_thumbnail"](asset_id), FastMCPImage)
        assert "error" in tools["view_thumbnail"]("missing")

    def test_get_media_asset_requires_lookup_key(self, tools):
        """One of asset_id or reference_key is required"""
        assert "error" in tools["get_media_asset"]()


class TestConfigurationTools:
    """Tests for configuration tools"""

    def test_get_pipeline_config(self, tools):
        """Effective settings and profiles are reported"""
        result = tools["get_pipeline_config"]()
        assert result["pipeline"]["quality"] == 80
        assert set(result["upload_profiles"]) == {"general", "cover"}

    def test_set_pipeline_config(self, tools, tmp_path):
        """Runtime settings apply to later calls"""
        result = tools["set_pipeline_config"](pipeline={"breakpoints": [320]})
        assert result["success"] is True

        source = write_image(tmp_path / "a.jpg", size=(800, 600))
        processed = tools["process_image"](str(source))
        assert "responsive_320w" in processed["variants"]

    def test_set_pipeline_config_invalid(self, tools):
        """Invalid settings are refused"""
        assert tools["set_pipeline_config"](pipeline={"quality": 1000})["success"] is False
        assert tools["set_pipeline_config"]()["success"] is False

    def test_set_pipeline_config_persist(self, tools, tmp_path):
        """Persisted settings are written to the config file"""
        result = tools["set_pipeline_config"](pipeline={"quality": 70}, persist=True)
        assert result["success"] is True
        assert (tmp_path / "config.json").exists()
