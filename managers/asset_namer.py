"""Collision-free, URL-safe identifiers for stored variants"""

import re
import time
import uuid
from typing import Optional

from models.config import (
    KIND_OPTIMIZED,
    KIND_ORIGINAL,
    KIND_RESPONSIVE,
    KIND_THUMBNAIL,
    KIND_WEBCODEC,
)

# Final identifier: simple filename only, no paths
IDENTIFIER_REGEX = re.compile(r'^[a-z0-9][a-z0-9._-]{0,127}$')
RESPONSIVE_KEY_REGEX = re.compile(r'^' + KIND_RESPONSIVE + r'_(\d+)w$')
UNSAFE_RUN_REGEX = re.compile(r'[^a-z0-9]+')

MAX_BASENAME_LENGTH = 48
FALLBACK_BASENAME = "image"

VARIANT_TAGS = {
    KIND_OPTIMIZED: "opt",
    KIND_WEBCODEC: "web",
    KIND_THUMBNAIL: "thumb",
    KIND_ORIGINAL: "orig",
}


def sanitize_basename(original_filename: Optional[str]) -> str:
    """Reduce a caller-supplied filename to a safe stem.

    Directory components (either separator style) and the extension are
    dropped; everything outside [a-z0-9] collapses to a single hyphen.
    """
    name = (original_filename or "").replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, _ = name.rpartition(".")
    if dot and stem:
        name = stem
    cleaned = UNSAFE_RUN_REGEX.sub("-", name.lower()).strip("-")
    cleaned = cleaned[:MAX_BASENAME_LENGTH].rstrip("-")
    return cleaned or FALLBACK_BASENAME


def variant_tag(variant_key: str) -> str:
    """Short tag used in filenames: optimized -> opt, responsive_640w -> 640w"""
    if variant_key in VARIANT_TAGS:
        return VARIANT_TAGS[variant_key]
    match = RESPONSIVE_KEY_REGEX.match(variant_key)
    if match:
        return f"{match.group(1)}w"
    raise ValueError(f"Unknown variant key: '{variant_key}'")


def make_disambiguator() -> str:
    """Creation timestamp (ms) plus a random suffix, unique per invocation"""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def validate_identifier(identifier: str) -> bool:
    return bool(IDENTIFIER_REGEX.match(identifier)) and ".." not in identifier


def name_for(original_filename: Optional[str], variant_key: str, disambiguator: str, extension: str) -> str:
    """Build '{basename}_{tag}_{disambiguator}.{ext}'.

    Raises:
        ValueError: If the resulting identifier is not filesystem/URL safe
    """
    extension = extension.lstrip(".").lower()
    identifier = f"{sanitize_basename(original_filename)}_{variant_tag(variant_key)}_{disambiguator}.{extension}"
    if not validate_identifier(identifier):
        raise ValueError(f"Generated identifier is not safe: '{identifier}'")
    return identifier
