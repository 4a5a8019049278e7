"""Image processing utilities for the media pipeline."""

import io
from collections.abc import Iterable
from typing import Any, Dict, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps
from PIL.ExifTags import TAGS

WATERMARK_FONT_SIZE = 36
WATERMARK_FILL = (255, 255, 255, 128)  # semi-transparent white

SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)

FILTERS = ("grayscale", "sepia", "blur", "kmeans")


def load_image(image_bytes: bytes) -> Image.Image:
    """Decode image bytes; raises PIL/OS errors for undecodable input."""
    image = Image.open(io.BytesIO(image_bytes))
    image.load()
    return image


def encode_image(img: Image.Image, pillow_format: str, quality: int = 95) -> bytes:
    """Encode an image, converting modes the target format cannot hold."""
    if pillow_format == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    output = io.BytesIO()
    if pillow_format in ("JPEG", "WEBP"):
        img.save(output, format=pillow_format, quality=quality)
    else:
        img.save(output, format=pillow_format)
    return output.getvalue()


def fit_within(img: Image.Image, width: int, height: int) -> Image.Image:
    """Scale up or down to fit the box while keeping the aspect ratio."""
    return ImageOps.contain(img, (width, height))


def draw_watermark(img: Image.Image, text: str) -> Image.Image:
    """Composite ``text`` centred on the image in semi-transparent white."""
    base = img.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default(size=WATERMARK_FONT_SIZE)

    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    text_width, text_height = right - left, bottom - top
    position = ((base.width - text_width) // 2, (base.height - text_height) // 2)

    draw.text(position, text, font=font, fill=WATERMARK_FILL)
    return Image.alpha_composite(base, overlay).convert("RGB")


def sklearn_kmeans_quantize(img: Image.Image, k: int = 8) -> Image.Image:
    """
    Scikit-learn K-means colour quantization.

    Args:
        img: PIL Image to quantize
        k: Number of color clusters

    Returns:
        Quantized PIL Image
    """
    import numpy as np
    from sklearn.cluster import KMeans

    img_array = np.array(img.convert("RGB"))
    pixels = img_array.reshape(-1, 3)

    kmeans = KMeans(n_clusters=k, random_state=42, n_init="auto")
    kmeans.fit(pixels)  # type: ignore[reportUnknownMemberType]

    # Replace each pixel with its cluster center
    quantized_pixels = kmeans.cluster_centers_[kmeans.labels_]  # type: ignore[reportUnknownMemberType,reportUnknownVariableType]
    quantized_array = quantized_pixels.reshape(img_array.shape).astype(np.uint8)  # type: ignore[reportUnknownMemberType,reportUnknownVariableType]

    return Image.fromarray(quantized_array)  # type: ignore[reportUnknownArgumentType]


def apply_filter(img: Image.Image, filter_type: str) -> Image.Image:
    """
    Apply a named colour filter to an image.

    Args:
        img: PIL Image to transform
        filter_type: One of "grayscale", "sepia", "blur", "kmeans" (case-insensitive)

    Returns:
        Filtered PIL Image in RGB mode, or the image unchanged when the
        filter type is unknown
    """
    name = filter_type.lower()
    if name == "grayscale":
        return img.convert("L").convert("RGB")
    elif name == "sepia":
        return img.convert("RGB").convert("RGB", SEPIA_MATRIX)
    elif name == "blur":
        return img.convert("RGB").filter(ImageFilter.GaussianBlur(radius=4))
    elif name == "kmeans":
        return sklearn_kmeans_quantize(img, k=8)
    else:
        return img


def extract_exif_data(img: Image.Image) -> Dict[str, Any]:
    """
    Extract EXIF metadata from PIL Image, handling privacy concerns.

    Args:
        img: PIL Image to extract EXIF from

    Returns:
        Dictionary containing EXIF data and image info
    """
    exif_dict: Dict[str, Any] = {
        "width": img.width,
        "height": img.height,
        "format": img.format or "unknown",
        "mode": img.mode,
    }

    for tag_id, value in img.getexif().items():
        tag = TAGS.get(tag_id, tag_id)

        # Skip GPS data for privacy
        if "gps" in str(tag).lower():
            continue

        processed_value: Union[str, int, float]
        if isinstance(value, bytes):
            try:
                processed_value = value.decode("utf-8")
            except UnicodeDecodeError:
                processed_value = str(value)
        elif isinstance(value, (str, int, float)):
            processed_value = value
        elif isinstance(value, Iterable):
            processed_value = str(value)
        else:
            processed_value = str(value)

        exif_dict[str(tag)] = processed_value

    return exif_dict
