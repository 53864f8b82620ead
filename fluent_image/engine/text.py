"""Text rendering and measurement through Pillow's FreeType bindings."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Any

import numpy as np

from fluent_image.errors import TextMeasurementFailure, UnavailableBackend
from fluent_image.logger import get_logger
from fluent_image.settings import TextOptions

from . import compositor
from .buffer import PixelBuffer

_logger = get_logger("text")

try:
    from PIL import Image as PILImage  # type: ignore
    from PIL import ImageDraw, ImageFont  # type: ignore
except ImportError:
    PILImage = ImageDraw = ImageFont = None  # type: ignore
    _logger.warning("Pillow is not available; text functions will raise UnavailableBackend")


def require_font_backend() -> None:
    if ImageFont is None:
        raise UnavailableBackend("Pillow is not available")


@lru_cache(maxsize=32)
def load_font(font: str | None, size: int) -> Any:
    require_font_backend()
    if font is None:
        return ImageFont.load_default(size=size)
    return ImageFont.truetype(font, size)


def _font(options: TextOptions) -> Any:
    try:
        return load_font(options.font, int(options.size))
    except OSError as e:
        raise TextMeasurementFailure(f"cannot load font {options.font!r}: {e}") from e


def bounding_box(text: str, options: TextOptions) -> list[tuple[float, float]]:
    """Corners of the rendered text relative to its baseline origin.

    Order: lower-left, lower-right, upper-right, upper-left, rotated
    counter-clockwise by ``options.angle``.
    """
    font = _font(options)
    try:
        left, top, right, bottom = font.getbbox(text, anchor="ls")
    except (OSError, ValueError) as e:
        raise TextMeasurementFailure(f"getTextSize error: {e}") from e
    theta = math.radians(options.angle)
    cos, sin = math.cos(theta), math.sin(theta)
    corners = [(left, bottom), (right, bottom), (right, top), (left, top)]
    # y grows downward, so a counter-clockwise turn is (x cos + y sin, -x sin + y cos)
    return [(x * cos + y * sin, -x * sin + y * cos) for x, y in corners]


def measure_text(text: str, options: TextOptions) -> dict[str, int]:
    if not text:
        raise TextMeasurementFailure("getTextSize error: empty text")
    lower_left, _, upper_right, _ = bounding_box(text, options)
    return {
        "width": round(abs(upper_right[0] - lower_left[0])),
        "height": round(abs(upper_right[1] - lower_left[1])),
    }


def draw_text(buffer: PixelBuffer, text: str, options: TextOptions) -> None:
    """Draw ``text`` with its baseline starting at (options.x, options.y)."""
    if not text:
        return
    font = _font(options)
    layer = PILImage.new("RGBA", (buffer.width, buffer.height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    draw.text((options.x, options.y), text, font=font, fill=(*options.color, 255), anchor="ls")
    if options.angle:
        layer = layer.rotate(options.angle, resample=PILImage.BICUBIC, center=(options.x, options.y))
    glyphs = PixelBuffer.from_rgba8(np.asarray(layer, dtype=np.uint8))

    # text is always blended, whatever the buffer's own blending mode
    blending = buffer.alpha_blending
    buffer.alpha_blending = True
    try:
        compositor.overlay(buffer, glyphs, 0, 0)
    finally:
        buffer.alpha_blending = blending
    _logger.debug("text %r at (%s, %s) size=%s angle=%s", text, options.x, options.y, options.size, options.angle)
