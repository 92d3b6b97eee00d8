"""Build RawUpload descriptors from local files or remote URLs"""

import logging
import mimetypes
import shutil
import uuid
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import requests

from managers.asset_namer import sanitize_basename
from managers.upload_validator import normalize_mime_type
from models.upload import RawUpload

logger = logging.getLogger("MediaServer")

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class UploadTooLargeError(ValueError):
    """Remote content exceeded the intake size ceiling"""


def _staging_path(staging_dir: Path, original_filename: str) -> Path:
    # Same shape as multipart intake names: '<stem>-<random>.upload'
    staging_dir.mkdir(parents=True, exist_ok=True)
    return staging_dir / f"{sanitize_basename(original_filename)}-{uuid.uuid4().hex}.upload"


def guess_mime_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def upload_from_path(
    source_path: Union[str, Path],
    staging_dir: Union[str, Path],
    mime_type: Optional[str] = None,
    original_filename: Optional[str] = None
) -> RawUpload:
    """Stage a copy of a local file for the pipeline.

    The pipeline deletes its temp file when it finishes, so the caller's file
    is copied rather than handed over.

    Raises:
        FileNotFoundError: If source_path is not an existing file
    """
    source = Path(source_path)
    if not source.is_file():
        raise FileNotFoundError(f"Source file does not exist: {source}")

    filename = original_filename or source.name
    temp_path = _staging_path(Path(staging_dir), filename)
    shutil.copyfile(source, temp_path)
    upload = RawUpload(
        temp_path=temp_path,
        declared_mime_type=mime_type or guess_mime_type(filename),
        declared_size=temp_path.stat().st_size,
        original_filename=filename,
    )
    logger.info(f"Staged local upload {source} -> {temp_path} ({upload.declared_size} bytes)")
    return upload


def upload_from_url(
    url: str,
    staging_dir: Union[str, Path],
    max_bytes: int,
    timeout: int = 30
) -> RawUpload:
    """Download a remote image into the staging directory.

    The body is streamed and abandoned as soon as it passes ``max_bytes``.

    Raises:
        requests.RequestException: On HTTP/network failure
        UploadTooLargeError: If the content exceeds max_bytes
    """
    filename = Path(unquote(urlparse(url).path)).name or "download"
    temp_path = _staging_path(Path(staging_dir), filename)

    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            declared_length = response.headers.get("Content-Length")
            if declared_length and declared_length.isdigit() and int(declared_length) > max_bytes:
                raise UploadTooLargeError(
                    f"Remote content is {declared_length} bytes, larger than {max_bytes} bytes"
                )

            received = 0
            with open(temp_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    received += len(chunk)
                    if received > max_bytes:
                        raise UploadTooLargeError(f"Remote content exceeded {max_bytes} bytes")
                    f.write(chunk)

            mime_type = normalize_mime_type(response.headers.get("Content-Type")) or guess_mime_type(filename)
    except (requests.RequestException, UploadTooLargeError, OSError) as e:
        logger.error(f"Failed to fetch upload from {url}: {e}")
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Downloaded upload {url} -> {temp_path} ({received} bytes, {mime_type})")
    return RawUpload(
        temp_path=temp_path,
        declared_mime_type=mime_type,
        declared_size=received,
        original_filename=filename,
    )
