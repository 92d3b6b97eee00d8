"""Image processing primitives for derivative generation and fingerprinting"""

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageCms, ImageOps

from models.asset import SourceMetadata

logger = logging.getLogger("ImageProcessor")

# Pillow format name -> file extension / MIME type
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
}
FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

HASH_GRID = (8, 8)
HASH_MODULUS = 2 ** 32

# Modes whose embedded profile describes RGB data
RGB_PROFILE_MODES = ("RGB", "RGBA", "P", "PA")
SRGB_PROFILE = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB"))


@dataclass(frozen=True)
class DecodedImage:
    """A fully loaded source image plus the facts lost by Pillow copies"""
    image: Image.Image
    format: Optional[str]
    bytes_size: int
    icc_profile: Optional[bytes] = None


def decode_image(source: Union[str, Path, bytes]) -> DecodedImage:
    """Open, orient and load an image so it can be shared read-only across threads."""
    if isinstance(source, bytes):
        src_bytes = len(source)
        img_source = BytesIO(source)
    else:
        src_bytes = Path(source).stat().st_size
        img_source = source

    with Image.open(img_source) as loaded:
        source_format = loaded.format
        icc_profile = loaded.info.get("icc_profile")
        # exif_transpose returns a new image even when no rotation is needed
        image = ImageOps.exif_transpose(loaded)
        image.load()

    logger.debug(f"Decoded image: format={source_format} dims={image.width}x{image.height} mode={image.mode}")
    return DecodedImage(image=image, format=source_format, bytes_size=src_bytes, icc_profile=icc_profile)


def image_has_alpha(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
        return True
    # tRNS-style transparency on P, L and RGB images
    return "transparency" in image.info


def get_image_metadata(decoded: DecodedImage) -> SourceMetadata:
    """Extract width, height, format and alpha/profile flags"""
    image = decoded.image
    return SourceMetadata(
        width=image.width,
        height=image.height,
        format=decoded.format,
        bytes_size=decoded.bytes_size,
        has_alpha=image_has_alpha(image),
        has_profile=decoded.icc_profile is not None,
        mode=image.mode,
    )


def normalize_mode(image: Image.Image) -> Image.Image:
    """Convert exotic modes (P, CMYK, I;16, ...) and keyed transparency to RGB or RGBA"""
    if image.mode == "RGBA" or (image.mode == "RGB" and "transparency" not in image.info):
        return image
    if image_has_alpha(image):
        return image.convert("RGBA")
    return image.convert("RGB")


def flatten_alpha(image: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Composite transparency onto a solid background (for JPEG targets)"""
    image = normalize_mode(image)
    if image.mode != "RGBA":
        return image
    flattened = Image.new("RGB", image.size, background)
    flattened.paste(image, mask=image.split()[-1])
    return flattened


def convert_to_srgb(image: Image.Image, icc_profile: bytes) -> Optional[Image.Image]:
    """Transform pixels from their embedded profile to sRGB, or None if lcms cannot"""
    if image_has_alpha(image):
        return None
    try:
        source_profile = ImageCms.ImageCmsProfile(BytesIO(icc_profile))
        return ImageCms.profileToProfile(image, source_profile, SRGB_PROFILE, outputMode="RGB")
    except (ImageCms.PyCMSError, OSError, ValueError) as e:
        logger.warning(f"Could not apply embedded {image.mode} colour profile: {e}")
        return None


def prepare_for_output(decoded: DecodedImage) -> Tuple[Image.Image, Optional[bytes]]:
    """RGB/RGBA pixels to resample from, plus the ICC profile still valid for them.

    Palette images are converted here so resizing uses real resampling
    instead of nearest-neighbour. A profile from a non-RGB colour model
    (CMYK, grayscale) is applied to the pixels and never embedded.
    """
    image = decoded.image
    if not decoded.icc_profile or image.mode in RGB_PROFILE_MODES:
        return normalize_mode(image), decoded.icc_profile
    converted = convert_to_srgb(image, decoded.icc_profile)
    if converted is None:
        converted = normalize_mode(image)
    return converted, None


def fit_inside_size(
    width: int,
    height: int,
    max_width: int,
    max_height: Optional[int] = None
) -> Tuple[int, int]:
    """Largest size within the bounds that keeps aspect ratio, never enlarging.

    ``max_height=None`` leaves the height unconstrained.
    """
    if width <= max_width and (max_height is None or height <= max_height):
        return width, height
    # Integer cross-multiplication picks the binding side without float error
    if max_height is None or width * max_height >= height * max_width:
        return max_width, max(1, round(height * max_width / width))
    return max(1, round(width * max_height / height)), max_height


def resize_to_fit(image: Image.Image, max_width: int, max_height: Optional[int] = None) -> Image.Image:
    new_size = fit_inside_size(image.width, image.height, max_width, max_height)
    if new_size == image.size:
        return image
    return image.resize(new_size, Image.Resampling.LANCZOS)


def cover_crop(image: Image.Image, width: int, height: int) -> Image.Image:
    """Fill exactly width x height, cropping the overflow around the centre"""
    return ImageOps.fit(image, (width, height), Image.Resampling.LANCZOS, centering=(0.5, 0.5))


def native_output_format(source_format: Optional[str], has_alpha: bool) -> str:
    """Pick the encoder for 'native format' variants"""
    if source_format in FORMAT_EXTENSIONS:
        return source_format
    return "PNG" if has_alpha else "JPEG"


def encode_image(
    image: Image.Image,
    format: str,
    quality: Optional[int] = None,
    icc_profile: Optional[bytes] = None
) -> bytes:
    """Encode to bytes; raises OSError/ValueError on encoder rejection"""
    save_kwargs = {"format": format}
    if format == "JPEG":
        image = flatten_alpha(image)
        save_kwargs.update(quality=quality or 80, optimize=True, progressive=True)
    elif format == "WEBP":
        image = normalize_mode(image)
        save_kwargs.update(quality=quality or 80, method=5)  # Method 5 trades CPU for size
    elif format == "PNG":
        image = normalize_mode(image)
        save_kwargs.update(optimize=True)
    elif format == "GIF":
        image = normalize_mode(image)
    else:
        raise ValueError(f"Unsupported output format: {format}")

    if icc_profile and format in ("JPEG", "WEBP", "PNG"):
        save_kwargs["icc_profile"] = icc_profile

    output = BytesIO()
    image.save(output, **save_kwargs)
    return output.getvalue()


def compute_content_hash(image: Image.Image) -> str:
    """Perceptual-ish fingerprint of decoded pixels.

    Downscales to an 8x8 intensity grid and folds the samples with
    ``h = h * 31 + sample`` modulo 2**32. Re-encodes of the same picture
    usually collide; this is not a security primitive.
    """
    grid = normalize_mode(image).resize(HASH_GRID, Image.Resampling.BILINEAR).convert("L")
    value = 0
    for sample in grid.tobytes():
        value = (value * 31 + sample) % HASH_MODULUS
    return f"{value:08x}"
