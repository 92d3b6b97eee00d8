"""Local-filesystem binding for stored derivative files"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Union

from models.config import (
    KIND_OPTIMIZED,
    KIND_ORIGINAL,
    KIND_RESPONSIVE,
    KIND_THUMBNAIL,
    KIND_WEBCODEC,
)
from managers.asset_namer import validate_identifier

logger = logging.getLogger("MediaServer")

# Variant kind -> directory under the asset root
KIND_DIRECTORIES: Dict[str, str] = {
    KIND_ORIGINAL: "original",
    KIND_OPTIMIZED: "optimized",
    KIND_THUMBNAIL: "thumbnails",
    KIND_WEBCODEC: "webCodec",
    KIND_RESPONSIVE: "responsive",
}
INCOMING_DIRECTORY = "incoming"
TEMP_SUFFIX = ".tmp"


def canonicalize_path(path: Union[str, Path], must_exist: bool = True) -> Path:
    """Resolve path to absolute real path (handles symlinks).

    Raises:
        ValueError: If path cannot be resolved and must_exist=True
    """
    try:
        return Path(path).resolve(strict=must_exist)
    except (OSError, RuntimeError) as e:
        raise ValueError(f"Cannot resolve path {path}: {e}")


def is_within(child_path: Union[str, Path], parent_path: Union[str, Path], child_must_exist: bool = True) -> bool:
    """Check if child_path is within parent_path using real path resolution.

    Both paths are canonicalized (symlinks resolved) before comparison.
    """
    try:
        child_real = canonicalize_path(child_path, must_exist=child_must_exist)
        parent_real = canonicalize_path(parent_path, must_exist=True)
    except ValueError:
        return False
    return child_real.is_relative_to(parent_real)


class AssetStore:
    """Owns the on-disk layout: one directory per variant kind under a root."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @property
    def incoming_dir(self) -> Path:
        return self.root / INCOMING_DIRECTORY

    def ensure_layout(self):
        """Create the root and every kind directory. Safe to call repeatedly."""
        self.root.mkdir(parents=True, exist_ok=True)
        for directory in list(KIND_DIRECTORIES.values()) + [INCOMING_DIRECTORY]:
            (self.root / directory).mkdir(exist_ok=True)
        logger.info(f"Asset store layout ready at {self.root}")

    def directory_for(self, kind: str) -> Path:
        try:
            return self.root / KIND_DIRECTORIES[kind]
        except KeyError:
            raise ValueError(f"Unknown variant kind: '{kind}'")

    def path_for(self, kind: str, filename: str) -> Path:
        """Resolve the stored path of a variant file, refusing anything outside its directory

        Raises:
            ValueError: If filename is not a safe identifier or escapes the kind directory
        """
        if not validate_identifier(filename):
            raise ValueError(f"Invalid stored filename: '{filename}'")
        directory = self.directory_for(kind)
        target = directory / filename
        if not is_within(target, directory, child_must_exist=False):
            raise ValueError(f"Target path {target} is outside {directory}")
        return target

    def write_variant(self, kind: str, filename: str, data: bytes) -> Path:
        """Write bytes with a temp file + atomic rename; never overwrites.

        Raises:
            FileExistsError: If a file with this identifier already exists
            OSError: If the write fails (the temp file is removed first)
        """
        target_path = self.path_for(kind, filename)
        if target_path.exists():
            raise FileExistsError(f"Refusing to overwrite stored variant: {target_path}")

        temp_path = target_path.with_name(target_path.name + TEMP_SUFFIX)
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(target_path)
        except OSError:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_error:
                    logger.error(f"Failed to remove temp file {temp_path}: {cleanup_error}")
            raise

        logger.debug(f"Stored variant: {target_path} ({len(data)} bytes)")
        return target_path

    def files_for_invocation(self, disambiguator: str) -> List[Path]:
        """Every stored or half-written file carrying this invocation's token"""
        if not disambiguator or not validate_identifier(disambiguator):
            raise ValueError(f"Invalid disambiguator: '{disambiguator}'")
        matches = []
        for directory in KIND_DIRECTORIES.values():
            kind_dir = self.root / directory
            if kind_dir.is_dir():
                # Matches 'x_opt_<token>.jpg' and its '.jpg.tmp' sibling
                matches.extend(sorted(kind_dir.glob(f"*_{disambiguator}.*")))
        return matches

    def remove_invocation(self, disambiguator: str) -> int:
        """Delete every file of one invocation. Idempotent; failures are logged.

        Returns:
            Number of files removed by this call
        """
        removed = 0
        for path in self.files_for_invocation(disambiguator):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to remove orphaned variant file {path}: {e}")
        if removed:
            logger.info(f"Removed {removed} file(s) for invocation {disambiguator}")
        return removed

    def discard_source(self, temp_path: Union[str, Path]) -> bool:
        """Remove the uploaded temp file once processing has finished"""
        path = Path(temp_path)
        try:
            path.unlink()
            logger.debug(f"Removed upload temp file {path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to remove upload temp file {path}: {e}")
            return False
