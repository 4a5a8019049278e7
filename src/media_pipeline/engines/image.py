"""Image engine facade over Pillow."""

from typing import Any, Dict, Mapping

from PIL import Image, UnidentifiedImageError

from ..core.exceptions import TransformFailure, UnsupportedType
from ..core.image_utils import (
    apply_filter,
    draw_watermark,
    encode_image,
    extract_exif_data,
    fit_within,
    load_image,
)
from ..core.models import ProcessingType
from ..core.routing import IMAGE_FORMATS

# Errors Pillow raises for undecodable, truncated or oversized input
CODEC_ERRORS = (
    UnidentifiedImageError,
    OSError,
    SyntaxError,
    ValueError,
    Image.DecompressionBombError,
)


class ImageEngine:
    """Pure byte-in/byte-out image transforms with no I/O dependencies.

    Parameters arrive already merged with their defaults by the router;
    outputs of THUMBNAIL, WATERMARK, RESIZE and FILTER are always JPEG.
    """

    SUPPORTED_TYPES = (
        ProcessingType.THUMBNAIL,
        ProcessingType.WATERMARK,
        ProcessingType.RESIZE,
        ProcessingType.FILTER,
        ProcessingType.FORMAT_CONVERSION,
    )

    def apply(
        self, data: bytes, processing_type: ProcessingType, parameters: Mapping[str, str]
    ) -> bytes:
        if processing_type not in self.SUPPORTED_TYPES:
            raise UnsupportedType(processing_type.value)

        try:
            image = load_image(data)

            if processing_type in (ProcessingType.THUMBNAIL, ProcessingType.RESIZE):
                result = fit_within(image, int(parameters["width"]), int(parameters["height"]))
                return encode_image(result, "JPEG")

            if processing_type == ProcessingType.WATERMARK:
                return encode_image(draw_watermark(image, parameters["text"]), "JPEG")

            if processing_type == ProcessingType.FILTER:
                return encode_image(apply_filter(image, parameters["type"]), "JPEG")

            target = IMAGE_FORMATS.get(parameters["format"].lower())
            if target is None:
                raise TransformFailure(f"Unsupported image format: {parameters['format']}")
            return encode_image(image, target[0])
        except CODEC_ERRORS as exc:
            raise TransformFailure(
                f"{processing_type.value} failed: {exc}", cause=exc
            ) from exc

    def generate_thumbnail(self, data: bytes, width: int = 200, height: int = 200) -> bytes:
        """Upload-time thumbnail used by the intake fast path."""
        return self.apply(
            data,
            ProcessingType.THUMBNAIL,
            {"width": str(width), "height": str(height)},
        )

    def extract_metadata(self, data: bytes) -> Dict[str, Any]:
        """Extract dimensions, format and EXIF from image bytes."""
        try:
            return extract_exif_data(load_image(data))
        except CODEC_ERRORS as exc:
            raise TransformFailure(f"Metadata extraction failed: {exc}", cause=exc) from exc
