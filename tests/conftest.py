"""Shared fixtures for media pipeline tests

Run with pytest from project root:
    pytest tests/ -v
"""

from pathlib import Path
from typing import Optional, Tuple

import pytest
from PIL import Image

from managers.asset_store import KIND_DIRECTORIES, AssetStore
from managers.pipeline import PipelineCoordinator
from models.upload import RawUpload


def gradient_image(size: Tuple[int, int] = (800, 600), mode: str = "RGB") -> Image.Image:
    """Deterministic non-uniform test picture (dark top, light bottom)"""
    image = Image.linear_gradient("L").resize(size)
    if mode == "RGBA":
        image = image.convert("RGBA")
        image.putalpha(128)
        return image
    return image.convert(mode)


def write_image(
    path: Path,
    size: Tuple[int, int] = (800, 600),
    format: str = "JPEG",
    mode: str = "RGB",
    image: Optional[Image.Image] = None,
    **save_kwargs
) -> Path:
    image = image or gradient_image(size, mode)
    image.save(path, format=format, **save_kwargs)
    return path


def stored_files(store: AssetStore):
    """Every file under the variant kind directories"""
    files = []
    for directory in KIND_DIRECTORIES.values():
        files.extend(p for p in (store.root / directory).iterdir() if p.is_file())
    return sorted(files)


@pytest.fixture
def store(tmp_path):
    asset_store = AssetStore(tmp_path / "uploads")
    asset_store.ensure_layout()
    return asset_store


@pytest.fixture
def coordinator(store):
    return PipelineCoordinator(store)


@pytest.fixture
def make_upload(tmp_path):
    """Build a RawUpload around a freshly written temp file"""
    staging = tmp_path / "staging"
    staging.mkdir()

    def _make_upload(
        filename: str = "photo.jpg",
        mime_type: str = "image/jpeg",
        size: Tuple[int, int] = (800, 600),
        format: str = "JPEG",
        mode: str = "RGB",
        data: Optional[bytes] = None,
        image: Optional[Image.Image] = None,
        **save_kwargs
    ) -> RawUpload:
        temp_path = staging / f"{len(list(staging.iterdir()))}-{filename}.upload"
        if data is not None:
            temp_path.write_bytes(data)
        else:
            write_image(temp_path, size=size, format=format, mode=mode, image=image, **save_kwargs)
        return RawUpload(
            temp_path=temp_path,
            declared_mime_type=mime_type,
            declared_size=temp_path.stat().st_size,
            original_filename=filename,
        )

    return _make_upload
