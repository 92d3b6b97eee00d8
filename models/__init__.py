"""Data models for the media derivative server"""

from models.asset import AssetStatus, MediaAsset, RejectionReason, SourceMetadata, VariantFile
from models.config import PipelineConfig, UploadPolicy, VariantSpec
from models.upload import RawUpload

__all__ = [
    "AssetStatus",
    "MediaAsset",
    "PipelineConfig",
    "RawUpload",
    "RejectionReason",
    "SourceMetadata",
    "UploadPolicy",
    "VariantFile",
    "VariantSpec",
]
