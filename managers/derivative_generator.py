"""Pixel transforms that turn one decoded source into each variant"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from PIL import Image

from image_processor import (
    FORMAT_EXTENSIONS,
    FORMAT_MIME_TYPES,
    DecodedImage,
    cover_crop,
    encode_image,
    image_has_alpha,
    native_output_format,
    prepare_for_output,
    resize_to_fit,
)
from models.config import (
    KIND_OPTIMIZED,
    KIND_ORIGINAL,
    KIND_RESPONSIVE,
    KIND_THUMBNAIL,
    KIND_WEBCODEC,
    PipelineConfig,
    VariantSpec,
)

logger = logging.getLogger("MediaServer")


@dataclass(frozen=True)
class EncodedVariant:
    """Encoded bytes for one variant, ready to be named and written"""
    key: str
    kind: str
    data: bytes
    width: int
    height: int
    format: str
    extension: str
    mime_type: str
    breakpoint: Optional[int] = None


@dataclass(frozen=True)
class DerivativeError:
    """A transform that could not be produced, with enough context to alert on"""
    key: str
    message: str
    cause: Optional[BaseException] = None

    def __str__(self):
        return f"Variant '{self.key}' failed: {self.message}"


class DerivativeGenerator:
    """Produces variant payloads from a shared, read-only decoded image.

    Holds no mutable state, so one instance can serve concurrent invocations.
    """

    def generate(
        self,
        decoded: DecodedImage,
        spec: VariantSpec,
        config: PipelineConfig,
        source_bytes: Optional[bytes] = None
    ) -> Union[EncodedVariant, DerivativeError]:
        """Run the transform for one variant spec.

        Args:
            decoded: Loaded source image (never mutated)
            spec: Variant target from PipelineConfig.variant_specs()
            config: Pipeline configuration in effect
            source_bytes: Raw upload bytes, required for the 'original' kind

        Returns:
            EncodedVariant on success, DerivativeError on encoder/colour-space failure
        """
        try:
            if spec.kind == KIND_ORIGINAL:
                return self._preserve_original(decoded, spec, source_bytes)
            if spec.kind not in (KIND_OPTIMIZED, KIND_RESPONSIVE, KIND_WEBCODEC, KIND_THUMBNAIL):
                return DerivativeError(key=spec.key, message=f"Unknown variant kind '{spec.kind}'")

            source, icc_profile = prepare_for_output(decoded)
            if spec.kind in (KIND_OPTIMIZED, KIND_RESPONSIVE):
                image = resize_to_fit(source, spec.width, spec.height)
                output_format = native_output_format(decoded.format, image_has_alpha(decoded.image))
            elif spec.kind == KIND_WEBCODEC:
                image = resize_to_fit(source, spec.width, spec.height)
                output_format = "WEBP"
            else:
                image = cover_crop(source, spec.width, spec.height)
                output_format = "JPEG"

            data = encode_image(image, output_format, quality=spec.quality, icc_profile=icc_profile)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.error(f"Transform failed for variant '{spec.key}': {e}")
            return DerivativeError(key=spec.key, message=str(e), cause=e)

        logger.debug(
            f"Encoded variant '{spec.key}': {image.width}x{image.height} {output_format} "
            f"quality={spec.quality} size={len(data)}B"
        )
        return EncodedVariant(
            key=spec.key,
            kind=spec.kind,
            data=data,
            width=image.width,
            height=image.height,
            format=output_format,
            extension=FORMAT_EXTENSIONS[output_format],
            mime_type=FORMAT_MIME_TYPES[output_format],
            breakpoint=spec.breakpoint,
        )

    def _preserve_original(
        self,
        decoded: DecodedImage,
        spec: VariantSpec,
        source_bytes: Optional[bytes]
    ) -> Union[EncodedVariant, DerivativeError]:
        if source_bytes is None:
            return DerivativeError(key=spec.key, message="Source bytes are required to preserve the original")
        output_format = native_output_format(decoded.format, image_has_alpha(decoded.image))
        if output_format != decoded.format:
            return DerivativeError(
                key=spec.key,
                message=f"Cannot preserve original in unsupported source format '{decoded.format}'",
            )
        return EncodedVariant(
            key=spec.key,
            kind=spec.kind,
            data=source_bytes,
            width=decoded.image.width,
            height=decoded.image.height,
            format=output_format,
            extension=FORMAT_EXTENSIONS[output_format],
            mime_type=FORMAT_MIME_TYPES[output_format],
        )
