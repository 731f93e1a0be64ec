"""
Watermark utility: tiled diagonal mark plus a centred translucent caption.
Used for free-plan downloads.
"""
import io
import logging
import math
import os

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

_FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
]

TILE_SPACING = 200
TILE_ANGLE = 30
TILE_FILL = (0, 0, 0, 38)  # ~15% black
CENTER_FILL = (255, 255, 255, 77)  # ~30% white
CENTER_STROKE = (0, 0, 0, 26)


def _get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for path in _FONT_PATHS:
        if os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
    try:
        return ImageFont.truetype("DejaVuSans-Bold", size)
    except OSError:
        return ImageFont.load_default()


def _text_size(draw: ImageDraw.ImageDraw, text: str, font) -> tuple[int, int]:
    bbox = draw.textbbox((0, 0), text, font=font)
    return bbox[2] - bbox[0], bbox[3] - bbox[1]


def _tiled_layer(width: int, height: int, text: str) -> Image.Image:
    diag = math.sqrt(width ** 2 + height ** 2)
    font = _get_font(max(16, int(diag * 0.017)))
    # Oversized square so the rotated tiles still cover every corner.
    max_dim = int(diag * 1.5)
    layer = Image.new("RGBA", (max_dim, max_dim), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    text_width, text_height = _text_size(draw, text, font)

    y = 0
    while y < max_dim:
        x = 0
        while x < max_dim:
            draw.text((x, y), text, font=font, fill=TILE_FILL)
            x += text_width + TILE_SPACING
        y += text_height + TILE_SPACING

    layer = layer.rotate(TILE_ANGLE, resample=Image.BICUBIC, expand=False)
    cx, cy = layer.width // 2, layer.height // 2
    left, top = cx - width // 2, cy - height // 2
    return layer.crop((left, top, left + width, top + height))


def _center_layer(width: int, height: int, text: str) -> Image.Image:
    diag = math.sqrt(width ** 2 + height ** 2)
    font = _get_font(max(24, int(diag * 0.034)))
    measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    text_width, text_height = _text_size(measure, text, font)

    pad = 4
    label = Image.new("RGBA", (text_width + pad * 2, text_height * 2 + pad * 2), (0, 0, 0, 0))
    ImageDraw.Draw(label).text(
        (pad, pad),
        text,
        font=font,
        fill=CENTER_FILL,
        stroke_width=1,
        stroke_fill=CENTER_STROKE,
    )
    label = label.rotate(TILE_ANGLE, resample=Image.BICUBIC, expand=True)

    layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    layer.paste(label, ((width - label.width) // 2, (height - label.height) // 2), label)
    return layer


def apply_watermark(image_bytes: bytes, tile_text: str = "TASMIM", center_text: str = "TASMIM PREVIEW") -> bytes:
    """
    Return PNG bytes of the image with the tiled mark and the centred caption.

    Raises on undecodable input; callers decide whether to fall back to the original.
    """
    img = Image.open(io.BytesIO(image_bytes)).convert("RGBA")
    width, height = img.size

    result = Image.alpha_composite(img, _tiled_layer(width, height, tile_text))
    result = Image.alpha_composite(result, _center_layer(width, height, center_text))

    out = io.BytesIO()
    result.save(out, "PNG")
    logger.info("watermark_applied", extra={"reason": "free_plan"})
    return out.getvalue()
