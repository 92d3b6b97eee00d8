"""Upload validation run before any transform"""

import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from models.asset import RejectionReason
from models.config import UploadPolicy
from models.upload import RawUpload

logger = logging.getLogger("MediaServer")


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Lowercase and drop parameters: 'Image/PNG; q=1' -> 'image/png'"""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def validate_upload(upload: RawUpload, policy: UploadPolicy) -> Optional[RejectionReason]:
    """Check an upload against a policy.

    Checks run in order: declared MIME type, declared and on-disk size, then
    decodability. Only reads the temp file.

    Returns:
        None when the upload is acceptable, otherwise the first RejectionReason hit.
    """
    mime_type = normalize_mime_type(upload.declared_mime_type)
    if mime_type not in policy.allowed_mime_types:
        logger.warning(
            f"Rejected upload '{upload.original_filename}': unsupported MIME type '{upload.declared_mime_type}'"
        )
        return RejectionReason.UNSUPPORTED_FORMAT

    if upload.declared_size > policy.max_bytes:
        logger.warning(
            f"Rejected upload '{upload.original_filename}': declared size {upload.declared_size}B "
            f"exceeds {policy.max_bytes}B"
        )
        return RejectionReason.TOO_LARGE

    try:
        actual_size = upload.temp_path.stat().st_size
    except OSError as e:
        logger.warning(f"Rejected upload '{upload.original_filename}': temp file unreadable: {e}")
        return RejectionReason.UNDECODABLE

    if actual_size > policy.max_bytes:
        logger.warning(
            f"Rejected upload '{upload.original_filename}': actual size {actual_size}B exceeds {policy.max_bytes}B"
        )
        return RejectionReason.TOO_LARGE

    try:
        with Image.open(upload.temp_path) as img:
            img.verify()
    except Image.DecompressionBombError as e:
        logger.warning(f"Rejected upload '{upload.original_filename}': {e}")
        return RejectionReason.TOO_LARGE
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        # verify() reports truncated/corrupt data as SyntaxError or OSError
        logger.warning(f"Rejected upload '{upload.original_filename}': not decodable as an image: {e}")
        return RejectionReason.UNDECODABLE

    return None
