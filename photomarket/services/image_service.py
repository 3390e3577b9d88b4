import io
import math
from PIL import Image as PILImage, ImageDraw, ImageFont, ImageOps


WATERMARK_MAX_WIDTH = 1600
THUMB_MAX_WIDTH = 300

# Overlay colours: light fill with a dark stroke reads on any background
WATERMARK_FILL = (255, 255, 255, 66)
WATERMARK_STROKE = (0, 0, 0, 46)
WATERMARK_ANGLE = 28


def _open_upright(image_bytes):
    """Open image bytes, apply EXIF orientation and drop metadata."""
    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.load()
    except Exception:
        raise ValueError("Invalid image file")

    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def _limit_width(img, max_width):
    """Scale down to max_width keeping aspect ratio. Never enlarges."""
    if img.width <= max_width:
        return img
    height = max(1, round(img.height * max_width / img.width))
    return img.resize((max_width, height), PILImage.LANCZOS)


def _encode_jpeg(img, quality):
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def _watermark_layer(width, height, text):
    """Build a transparent layer with `text` tiled diagonally over it."""
    cell_w = max(1, round(width / 3))
    cell_h = max(1, round(height / 3.5))
    font_size = max(8, round(min(cell_h * 0.6, cell_w * 0.35)))
    stroke_width = max(2, round(font_size * 0.06))
    font = ImageFont.load_default(size=font_size)

    # Oversized square so the rotated tiles still cover every corner
    side = int(math.hypot(width, height)) + 1
    layer = PILImage.new("RGBA", (side, side), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    for y in range(0, side, cell_h):
        for x in range(0, side, cell_w):
            draw.text(
                (x, y),
                text,
                font=font,
                fill=WATERMARK_FILL,
                stroke_width=stroke_width,
                stroke_fill=WATERMARK_STROKE,
            )

    layer = layer.rotate(WATERMARK_ANGLE, resample=PILImage.BICUBIC)
    left = (side - width) // 2
    top = (side - height) // 2
    return layer.crop((left, top, left + width, top + height))


def make_watermark(image_bytes, text="SAMPLE", max_width=WATERMARK_MAX_WIDTH):
    """Render the preview shown to buyers before purchase.

    - Scales the long edge down to `max_width` (no enlargement)
    - Tiles `text` diagonally across the whole frame
    - Re-encodes as JPEG, which also strips EXIF

    Returns:
        JPEG bytes

    Raises:
        ValueError on invalid input
    """
    img = _limit_width(_open_upright(image_bytes), max_width)
    overlay = _watermark_layer(img.width, img.height, text)
    composed = PILImage.alpha_composite(img.convert("RGBA"), overlay)
    return _encode_jpeg(composed.convert("RGB"), quality=80)


def make_thumb(image_bytes, max_width=THUMB_MAX_WIDTH):
    """Create a small, low-quality thumbnail for album grids."""
    img = _limit_width(_open_upright(image_bytes), max_width)
    return _encode_jpeg(img, quality=60)
