"""Client-facing URLs and responsive markup for committed assets"""

from dataclasses import dataclass, field
from html import escape
from typing import Dict, List, Optional, Tuple

from models.asset import MediaAsset, VariantFile
from models.config import (
    KIND_OPTIMIZED,
    KIND_ORIGINAL,
    KIND_RESPONSIVE,
    KIND_THUMBNAIL,
    KIND_WEBCODEC,
)

DEFAULT_PATH_PREFIXES: Dict[str, str] = {
    KIND_OPTIMIZED: "/uploads/optimized",
    KIND_WEBCODEC: "/uploads/webCodec",
    KIND_THUMBNAIL: "/uploads/thumbnails",
    KIND_RESPONSIVE: "/uploads/responsive",
    KIND_ORIGINAL: "/uploads/original",
}


@dataclass(frozen=True)
class DeliveryDescriptor:
    asset_id: str
    urls: Dict[str, str]
    candidates: List[Tuple[int, str]]  # (width, url), ascending width
    fallback_url: Optional[str]
    fallback_width: Optional[int] = None
    fallback_height: Optional[int] = None
    responsive_mime_type: Optional[str] = None
    variant_mime_types: Dict[str, str] = field(default_factory=dict)

    def srcset(self) -> str:
        return ", ".join(f"{url} {width}w" for width, url in self.candidates)

    def picture_element(self, alt: str = "", sizes: str = "100vw") -> str:
        """Render a <picture> with WebP and native sources and a lazy <img> fallback"""
        html = "<picture>"
        webcodec_url = self.urls.get(KIND_WEBCODEC)
        if webcodec_url:
            html += f'<source type="image/webp" srcset="{escape(webcodec_url)}">'
        if self.candidates:
            html += (
                f'<source type="{escape(self.responsive_mime_type or "")}" '
                f'srcset="{escape(self.srcset())}" sizes="{escape(sizes)}">'
            )
        img_src = self.fallback_url or webcodec_url or ""
        dimensions = ""
        if self.fallback_width and self.fallback_height:
            dimensions = f' width="{self.fallback_width}" height="{self.fallback_height}"'
        html += f'<img src="{escape(img_src)}" alt="{escape(alt)}"{dimensions} loading="lazy">'
        html += "</picture>"
        return html

    def to_dict(self) -> Dict:
        return {
            "asset_id": self.asset_id,
            "urls": dict(self.urls),
            "candidates": [{"width": width, "url": url} for width, url in self.candidates],
            "srcset": self.srcset(),
            "fallback_url": self.fallback_url,
        }


class DeliveryDescriptorBuilder:
    """Turns a committed asset into URLs. Works on the in-memory record only."""

    def __init__(self, path_prefixes: Optional[Dict[str, str]] = None):
        self.path_prefixes = dict(DEFAULT_PATH_PREFIXES)
        if path_prefixes:
            self.path_prefixes.update(path_prefixes)

    def url_for(self, variant: VariantFile, base_url: str) -> str:
        prefix = "/" + self.path_prefixes[variant.kind].strip("/")
        return f"{base_url.rstrip('/')}{prefix}/{variant.filename}"

    def describe(self, asset: MediaAsset, base_url: str) -> DeliveryDescriptor:
        """Build the delivery descriptor for a committed asset

        Raises:
            ValueError: If the asset is not committed
        """
        if not asset.is_committed:
            raise ValueError(f"Cannot describe asset {asset.id} with status '{asset.status.value}'")

        urls = {key: self.url_for(variant, base_url) for key, variant in asset.variants.items()}
        responsive = sorted(
            (variant for variant in asset.variants.values() if variant.kind == KIND_RESPONSIVE),
            key=lambda variant: variant.breakpoint or variant.width,
        )
        # Breakpoints above the source width produce identical files; keep the first
        candidates: List[Tuple[int, str]] = []
        seen_widths = set()
        for variant in responsive:
            if variant.width in seen_widths:
                continue
            seen_widths.add(variant.width)
            candidates.append((variant.width, urls[variant.key]))

        fallback = asset.variants.get(KIND_OPTIMIZED)
        return DeliveryDescriptor(
            asset_id=asset.id,
            urls=urls,
            candidates=candidates,
            fallback_url=urls.get(KIND_OPTIMIZED),
            fallback_width=fallback.width if fallback else None,
            fallback_height=fallback.height if fallback else None,
            responsive_mime_type=responsive[0].mime_type if responsive else None,
            variant_mime_types={key: variant.mime_type for key, variant in asset.variants.items()},
        )
