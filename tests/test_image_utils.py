"""Tests for image_utils.py utility functions."""

import pytest
from PIL import Image

from media_pipeline.core.image_utils import (
    apply_filter,
    draw_watermark,
    encode_image,
    extract_exif_data,
    fit_within,
    load_image,
    sklearn_kmeans_quantize,
)
from media_pipeline.testing.fakes import create_test_image


class TestLoadAndEncode:
    def test_load_image(self):
        image = load_image(create_test_image(64, 32))
        assert image.size == (64, 32)
        assert image.format == "JPEG"

    def test_load_image_rejects_garbage(self):
        with pytest.raises(OSError):
            load_image(b"definitely not an image")

    def test_encode_jpeg_converts_alpha(self):
        image = Image.new("RGBA", (10, 10), (255, 0, 0, 128))

        data = encode_image(image, "JPEG")

        assert load_image(data).mode == "RGB"

    @pytest.mark.parametrize("pillow_format", ["PNG", "GIF", "BMP", "WEBP", "TIFF"])
    def test_encode_other_formats(self, pillow_format):
        image = load_image(create_test_image(20, 20))

        data = encode_image(image, pillow_format)

        assert load_image(data).format == pillow_format


class TestFitWithin:
    def test_downscale_keeps_aspect_ratio(self):
        image = Image.new("RGB", (400, 200))
        assert fit_within(image, 200, 200).size == (200, 100)

    def test_upscale_to_fit_box(self):
        image = Image.new("RGB", (50, 100))
        assert fit_within(image, 800, 600).size == (300, 600)


class TestWatermark:
    def test_watermark_changes_pixels_but_not_size(self):
        image = Image.new("RGB", (200, 100), "black")

        marked = draw_watermark(image, "Copyright")

        assert marked.size == image.size
        assert marked.mode == "RGB"
        assert marked.getextrema() != image.getextrema()


class TestApplyFilter:
    @pytest.mark.parametrize("filter_type", ["grayscale", "sepia", "blur", "GRAYSCALE"])
    def test_known_filters(self, filter_type):
        image = load_image(create_test_image(40, 40))

        result = apply_filter(image, filter_type)

        assert result.size == (40, 40)
        assert result.mode == "RGB"

    def test_grayscale_channels_are_equal(self):
        image = load_image(create_test_image(40, 40))

        r, g, b = apply_filter(image, "grayscale").getpixel((5, 5))

        assert r == g == b

    def test_unknown_filter_returns_image_unchanged(self):
        image = Image.new("RGB", (10, 10), (12, 34, 56))

        assert apply_filter(image, "vaporwave") is image


class TestSklearnKmeansQuantize:
    def test_quantize_limits_colours(self):
        image = load_image(create_test_image(40, 40))

        result = sklearn_kmeans_quantize(image, k=2)

        assert result.size == (40, 40)
        assert len(result.getcolors(maxcolors=4096)) <= 2


class TestExtractExifData:
    def test_basic_fields(self):
        image = load_image(create_test_image(30, 20))

        data = extract_exif_data(image)

        assert data["width"] == 30
        assert data["height"] == 20
        assert data["format"] == "JPEG"
        assert data["mode"] == "RGB"

    def test_gps_tags_are_stripped(self):
        image = Image.new("RGB", (10, 10))
        exif = image.getexif()
        exif[0x010F] = "ACME Camera"  # Make
        exif[0x8825] = 1234  # GPSInfo

        with pytest.MonkeyPatch.context() as m:
            m.setattr(image, "getexif", lambda: exif)
            data = extract_exif_data(image)

        assert data["Make"] == "ACME Camera"
        assert not any("gps" in key.lower() for key in data)
