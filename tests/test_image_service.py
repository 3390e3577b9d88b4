"""Tests for the Pillow-based watermark and thumbnail renderer."""
import io

import pytest
from PIL import Image as PILImage

from photomarket.services import image_service


def _open(data):
    return PILImage.open(io.BytesIO(data))


def test_watermark_limits_width_and_encodes_jpeg(jpeg_bytes):
    out = image_service.make_watermark(jpeg_bytes, text="SAMPLE")

    img = _open(out)
    assert img.format == "JPEG"
    assert img.size == (1600, 1067)


def test_watermark_changes_pixels(jpeg_bytes):
    plain = _open(image_service.make_thumb(jpeg_bytes, max_width=1600)).convert("RGB")
    marked = _open(image_service.make_watermark(jpeg_bytes)).convert("RGB")

    assert plain.size == marked.size
    assert plain.getextrema() != marked.getextrema()


def test_watermark_does_not_enlarge_small_images():
    buffer = io.BytesIO()
    PILImage.new("RGB", (40, 30), (200, 10, 10)).save(buffer, format="PNG")

    out = _open(image_service.make_watermark(buffer.getvalue()))

    assert out.size == (40, 30)


def test_thumbnail_is_small(jpeg_bytes):
    img = _open(image_service.make_thumb(jpeg_bytes))
    assert img.format == "JPEG"
    assert img.width == 300
    assert img.height == 200


def test_rgba_input_is_flattened():
    buffer = io.BytesIO()
    PILImage.new("RGBA", (500, 500), (0, 0, 0, 0)).save(buffer, format="PNG")

    img = _open(image_service.make_thumb(buffer.getvalue()))

    assert img.mode == "RGB"


def test_invalid_bytes_rejected():
    with pytest.raises(ValueError):
        image_service.make_thumb(b"not an image")
