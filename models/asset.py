"""Media asset data models"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AssetStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMMITTED = "committed"
    FAILED = "failed"


class RejectionReason(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    TOO_LARGE = "too_large"
    UNDECODABLE = "undecodable"


@dataclass(frozen=True)
class SourceMetadata:
    """Facts about the decoded source image"""
    width: int
    height: int
    format: Optional[str]
    bytes_size: int
    has_alpha: bool
    has_profile: bool = False
    mode: Optional[str] = None


@dataclass(frozen=True)
class VariantFile:
    """One derived file as stored under the asset root"""
    key: str  # optimized, webcodec, thumbnail, original, responsive_640w, ...
    kind: str
    filename: str
    width: int
    height: int
    format: str
    mime_type: str
    bytes_size: int
    breakpoint: Optional[int] = None


@dataclass
class MediaAsset:
    """Record of one pipeline invocation and, once committed, its derivatives"""
    id: str
    status: AssetStatus
    created_at: datetime
    original_filename: str
    disambiguator: str
    content_hash: Optional[str] = None
    source_metadata: Optional[SourceMetadata] = None
    variants: Dict[str, VariantFile] = field(default_factory=dict)
    rejection: Optional[RejectionReason] = None
    error: Optional[str] = None

    @property
    def is_committed(self) -> bool:
        return self.status == AssetStatus.COMMITTED

    def commit(self, variants: Dict[str, VariantFile]):
        """Populate the variant map and mark the asset committed in one step."""
        if self.status != AssetStatus.PROCESSING:
            raise ValueError(f"Cannot commit asset {self.id} from status '{self.status.value}'")
        if not variants:
            raise ValueError(f"Cannot commit asset {self.id} without variants")
        self.variants = dict(variants)
        self.status = AssetStatus.COMMITTED

    def fail(self, error: Optional[str] = None, rejection: Optional[RejectionReason] = None):
        if self.status == AssetStatus.COMMITTED:
            raise ValueError(f"Committed asset {self.id} cannot fail")
        self.status = AssetStatus.FAILED
        self.variants = {}
        self.rejection = rejection
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view for reference stores and tool responses"""
        metadata = self.source_metadata
        return {
            "id": self.id,
            "status": self.status.value,
            "content_hash": self.content_hash,
            "created_at": self.created_at.isoformat(),
            "original_filename": self.original_filename,
            "source_metadata": {
                "width": metadata.width,
                "height": metadata.height,
                "format": metadata.format,
                "bytes_size": metadata.bytes_size,
                "has_alpha": metadata.has_alpha,
                "has_profile": metadata.has_profile,
            } if metadata else None,
            "variants": {
                key: {
                    "kind": variant.kind,
                    "breakpoint": variant.breakpoint,
                    "filename": variant.filename,
                    "width": variant.width,
                    "height": variant.height,
                    "format": variant.format,
                    "mime_type": variant.mime_type,
                    "bytes_size": variant.bytes_size,
                }
                for key, variant in self.variants.items()
            },
            "rejection": self.rejection.value if self.rejection else None,
            "error": self.error,
        }
