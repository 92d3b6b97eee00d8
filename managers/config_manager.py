"""Configuration management for pipeline and server settings"""

import json
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

from models.config import UPLOAD_PROFILES, PipelineConfig, UploadPolicy

logger = logging.getLogger("MediaServer")

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "media-derivatives"
CONFIG_FILE = CONFIG_DIR / "config.json"

NAMESPACES = ("pipeline", "server")


def _parse_int_list(raw: str):
    return [int(part) for part in raw.split(",") if part.strip()]


def _parse_str_list(raw: str):
    return [part.strip() for part in raw.split(",") if part.strip()]


# Environment variable -> (namespace, key, parser)
ENV_VARIABLES: Dict[str, tuple] = {
    "MEDIA_PIPELINE_QUALITY": ("pipeline", "quality", int),
    "MEDIA_PIPELINE_MAX_WIDTH": ("pipeline", "max_width", int),
    "MEDIA_PIPELINE_MAX_HEIGHT": ("pipeline", "max_height", int),
    "MEDIA_PIPELINE_THUMBNAIL_SIZE": ("pipeline", "thumbnail_size", int),
    "MEDIA_PIPELINE_BREAKPOINTS": ("pipeline", "breakpoints", _parse_int_list),
    "MEDIA_PIPELINE_VARIANTS": ("pipeline", "variants_enabled", _parse_str_list),
    "MEDIA_PIPELINE_WORKERS": ("pipeline", "max_workers", int),
    "MEDIA_PIPELINE_TIMEOUT": ("pipeline", "timeout_seconds", float),
    "MEDIA_ASSET_ROOT": ("server", "asset_root", str),
    "MEDIA_BASE_URL": ("server", "base_url", str),
    "MEDIA_SERVER_PORT": ("server", "port", int),
}

PIPELINE_KEYS = frozenset(f.name for f in fields(PipelineConfig))


class ConfigManager:
    """Resolves settings with precedence: per-call > runtime > config file > env > hardcoded"""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file else CONFIG_FILE
        self._runtime_overrides: Dict[str, Dict[str, Any]] = {namespace: {} for namespace in NAMESPACES}
        self._config_values = self._load_config_values()
        self._hardcoded_defaults = {
            "pipeline": PipelineConfig().to_dict(),
            "server": {
                "asset_root": "uploads",
                "base_url": "http://localhost:5000",
                "port": 9000,
            },
        }

    def _load_config_values(self) -> Dict[str, Dict[str, Any]]:
        """Load values from the JSON config file"""
        values = {namespace: {} for namespace in NAMESPACES}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
                for namespace in NAMESPACES:
                    section = config.get(namespace, {})
                    if isinstance(section, dict):
                        values[namespace] = section
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")
        return values

    def _get_env_values(self) -> Dict[str, Dict[str, Any]]:
        """Load values from environment variables, skipping malformed ones"""
        values = {namespace: {} for namespace in NAMESPACES}
        for variable, (namespace, key, parser) in ENV_VARIABLES.items():
            raw = os.getenv(variable)
            if raw is None or raw == "":
                continue
            try:
                values[namespace][key] = parser(raw)
            except ValueError as e:
                logger.warning(f"Ignoring malformed {variable}={raw!r}: {e}")
        return values

    def get_value(self, namespace: str, key: str, provided_value: Any = None) -> Any:
        if provided_value is not None:
            return provided_value
        for source in (
            self._runtime_overrides,
            self._config_values,
            self._get_env_values(),
            self._hardcoded_defaults,
        ):
            if key in source.get(namespace, {}):
                return source[namespace][key]
        return None

    def get_all_values(self) -> Dict[str, Dict[str, Any]]:
        """Effective values merged from all sources"""
        env_values = self._get_env_values()
        result = {}
        for namespace in NAMESPACES:
            merged = dict(self._hardcoded_defaults[namespace])
            merged.update(env_values.get(namespace, {}))
            merged.update(self._config_values.get(namespace, {}))
            merged.update(self._runtime_overrides.get(namespace, {}))
            result[namespace] = merged
        return result

    def get_pipeline_config(self, overrides: Optional[Dict[str, Any]] = None) -> PipelineConfig:
        """Build the effective PipelineConfig, with optional per-call overrides

        Raises:
            ValueError: If the merged values do not form a valid configuration
        """
        values = self.get_all_values()["pipeline"]
        if overrides:
            values.update({key: value for key, value in overrides.items() if value is not None})
        return PipelineConfig.from_dict(values)

    def get_upload_policy(self, profile: str = "general") -> UploadPolicy:
        try:
            return UPLOAD_PROFILES[profile]
        except KeyError:
            raise ValueError(f"Unknown upload profile: '{profile}'. Valid profiles: {sorted(UPLOAD_PROFILES)}")

    def set_overrides(self, namespace: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Set runtime overrides for a namespace. Returns validation errors if any."""
        if namespace not in NAMESPACES:
            return {"error": f"Invalid namespace: {namespace}. Must be one of {list(NAMESPACES)}"}

        if namespace == "pipeline":
            unknown = set(values) - PIPELINE_KEYS
            if unknown:
                return {"errors": [f"Unknown pipeline settings: {sorted(unknown)}"]}
            candidate = dict(self.get_all_values()["pipeline"])
            candidate.update(values)
            try:
                PipelineConfig.from_dict(candidate)
            except (TypeError, ValueError) as e:
                return {"errors": [str(e)]}

        self._runtime_overrides[namespace].update(values)
        logger.info(f"Updated runtime {namespace} settings: {values}")
        return {"success": True, "updated": values}

    def persist_overrides(self, namespace: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Persist values to the config file"""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        config = {}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
            except (json.JSONDecodeError, IOError):
                config = {}

        config.setdefault(namespace, {}).update(values)

        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2)
            self._config_values = self._load_config_values()
            return {"success": True, "persisted": values}
        except IOError as e:
            return {"error": f"Failed to write config file: {e}"}
