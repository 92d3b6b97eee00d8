"""Pipeline and upload policy configuration models"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

KIND_OPTIMIZED = "optimized"
KIND_WEBCODEC = "webcodec"
KIND_THUMBNAIL = "thumbnail"
KIND_RESPONSIVE = "responsive"
KIND_ORIGINAL = "original"

VARIANT_KINDS = (KIND_OPTIMIZED, KIND_WEBCODEC, KIND_THUMBNAIL, KIND_RESPONSIVE, KIND_ORIGINAL)
DEFAULT_VARIANTS = frozenset({KIND_OPTIMIZED, KIND_WEBCODEC, KIND_THUMBNAIL, KIND_RESPONSIVE})

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif")

MIB = 1024 * 1024


def responsive_key(width: int) -> str:
    return f"{KIND_RESPONSIVE}_{width}w"


@dataclass(frozen=True)
class VariantSpec:
    """Transform target for a single variant"""
    key: str
    kind: str
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[int] = None
    breakpoint: Optional[int] = None


@dataclass(frozen=True)
class PipelineConfig:
    """Everything one pipeline invocation needs to know, fully enumerated"""
    quality: int = 80
    max_width: int = 1920
    max_height: int = 1080
    thumbnail_size: int = 300
    thumbnail_quality: int = 85
    responsive_quality: int = 85
    breakpoints: Tuple[int, ...] = (640, 768, 1024, 1280, 1920)
    variants_enabled: FrozenSet[str] = field(default_factory=lambda: DEFAULT_VARIANTS)
    max_workers: int = 4
    timeout_seconds: Optional[float] = None

    def __post_init__(self):
        # Normalize containers so JSON/env input compares equal to literals
        object.__setattr__(self, "breakpoints", tuple(sorted({int(bp) for bp in self.breakpoints})))
        object.__setattr__(self, "variants_enabled", frozenset(self.variants_enabled))

        for name in ("quality", "thumbnail_quality", "responsive_quality"):
            value = getattr(self, name)
            if not 1 <= value <= 100:
                raise ValueError(f"{name} must be between 1 and 100, got {value}")
        for name in ("max_width", "max_height", "thumbnail_size", "max_workers"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if any(bp <= 0 for bp in self.breakpoints):
            raise ValueError(f"Breakpoints must be positive, got {list(self.breakpoints)}")
        unknown = self.variants_enabled - set(VARIANT_KINDS)
        if unknown:
            raise ValueError(f"Unknown variant kinds: {sorted(unknown)}. Valid kinds: {list(VARIANT_KINDS)}")
        if not self.variants_enabled:
            raise ValueError("At least one variant kind must be enabled")
        if KIND_RESPONSIVE in self.variants_enabled and not self.breakpoints:
            raise ValueError("Responsive variants are enabled but no breakpoints are configured")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")

    def variant_specs(self) -> List[VariantSpec]:
        """Expand the enabled kinds into one spec per produced file."""
        specs = []
        if KIND_ORIGINAL in self.variants_enabled:
            specs.append(VariantSpec(key=KIND_ORIGINAL, kind=KIND_ORIGINAL))
        if KIND_OPTIMIZED in self.variants_enabled:
            specs.append(VariantSpec(
                key=KIND_OPTIMIZED, kind=KIND_OPTIMIZED,
                width=self.max_width, height=self.max_height, quality=self.quality,
            ))
        if KIND_WEBCODEC in self.variants_enabled:
            specs.append(VariantSpec(
                key=KIND_WEBCODEC, kind=KIND_WEBCODEC,
                width=self.max_width, height=self.max_height, quality=self.quality,
            ))
        if KIND_THUMBNAIL in self.variants_enabled:
            specs.append(VariantSpec(
                key=KIND_THUMBNAIL, kind=KIND_THUMBNAIL,
                width=self.thumbnail_size, height=self.thumbnail_size, quality=self.thumbnail_quality,
            ))
        if KIND_RESPONSIVE in self.variants_enabled:
            for bp in self.breakpoints:
                specs.append(VariantSpec(
                    key=responsive_key(bp), kind=KIND_RESPONSIVE,
                    width=bp, quality=self.responsive_quality, breakpoint=bp,
                ))
        return specs

    def expected_variant_keys(self) -> FrozenSet[str]:
        return frozenset(spec.key for spec in self.variant_specs())

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from loose JSON-style values, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in values.items() if key in known and value is not None}
        if "breakpoints" in kwargs:
            kwargs["breakpoints"] = tuple(int(bp) for bp in kwargs["breakpoints"])
        if "variants_enabled" in kwargs:
            kwargs["variants_enabled"] = frozenset(kwargs["variants_enabled"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality": self.quality,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "thumbnail_size": self.thumbnail_size,
            "thumbnail_quality": self.thumbnail_quality,
            "responsive_quality": self.responsive_quality,
            "breakpoints": list(self.breakpoints),
            "variants_enabled": sorted(self.variants_enabled),
            "max_workers": self.max_workers,
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass(frozen=True)
class UploadPolicy:
    """Acceptance rules applied by the validator"""
    max_bytes: int = 10 * MIB
    allowed_mime_types: Tuple[str, ...] = ALLOWED_MIME_TYPES


UPLOAD_PROFILES: Dict[str, UploadPolicy] = {
    "general": UploadPolicy(max_bytes=10 * MIB),
    "cover": UploadPolicy(max_bytes=5 * MIB),
}
