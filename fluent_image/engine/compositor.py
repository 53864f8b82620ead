"""Pixel copy, resample and blend operations driven by geometry plans."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np

from fluent_image.logger import get_logger

from . import codec
from .buffer import ALPHA_OPAQUE, ALPHA_TRANSPARENT, PixelBuffer, alpha7_to_alpha8, as_rgba
from .geometry import Rect, ResizeMode, ResizePlan, clamp_rect, round_int

_logger = get_logger("compositor")

_RIGHT_ANGLE = 90
_FULL_TURN = 360


class Anchor(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"
    TOP = "top"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class Absolute:
    offset: int


Position = Anchor | Absolute


def as_position(value: Position | int | str) -> Position:
    if isinstance(value, (Anchor, Absolute)):
        return value
    if isinstance(value, bool):
        raise TypeError(f"invalid position {value!r}")
    if isinstance(value, int):
        return Absolute(value)
    if isinstance(value, str):
        text = value.strip().lower()
        try:
            return Anchor(text)
        except ValueError:
            try:
                return Absolute(int(text))
            except ValueError:
                raise ValueError(f"invalid position {value!r}") from None
    raise TypeError(f"invalid position {value!r}")


def resolve_position(position: Position | int | str, base_dim: int, overlay_dim: int) -> int:
    """Turn a position into a pixel offset along one axis."""
    position = as_position(position)
    if isinstance(position, Absolute):
        return position.offset
    if position in (Anchor.LEFT, Anchor.TOP):
        return 0
    if position in (Anchor.RIGHT, Anchor.BOTTOM):
        return base_dim - overlay_dim
    return round_int((base_dim - overlay_dim) / 2)


def new_canvas(width: int, height: int, fill_color: Sequence[int], transparent: bool) -> PixelBuffer:
    """Allocate a canvas filled with ``fill_color``, or fully transparent."""
    if transparent:
        return PixelBuffer.allocate(width, height, (0, 0, 0, ALPHA_TRANSPARENT))
    r, g, b = fill_color[:3]
    return PixelBuffer.allocate(width, height, (r, g, b))


def _clip(dst: PixelBuffer, dst_x: int, dst_y: int, src: PixelBuffer, src_rect: Rect) -> tuple[Rect, Rect] | None:
    """Clip a 1:1 copy to both buffers; returns matching (dst, src) rectangles."""
    src_rect = clamp_rect(src_rect, src.width, src.height)
    # shift the destination by however much clamping trimmed from the source origin
    target = Rect(dst_x, dst_y, src_rect.width, src_rect.height)
    clipped = clamp_rect(target, dst.width, dst.height)
    if clipped.empty or src_rect.empty:
        return None
    sx = src_rect.x + (clipped.x - target.x)
    sy = src_rect.y + (clipped.y - target.y)
    return clipped, Rect(sx, sy, clipped.width, clipped.height)


def copy_plain(dst: PixelBuffer, src: PixelBuffer, dst_x: int, dst_y: int, src_rect: Rect | None = None) -> None:
    """Copy ``src_rect`` of ``src`` into ``dst`` at (dst_x, dst_y) without scaling.

    Pixels falling outside either buffer are dropped.
    """
    if src_rect is None:
        src_rect = Rect(0, 0, src.width, src.height)
    clipped = _clip(dst, dst_x, dst_y, src, src_rect)
    if clipped is None:
        return
    d, s = clipped
    dst.pixels[d.y : d.bottom, d.x : d.right] = src.pixels[s.y : s.bottom, s.x : s.right]


def _scale(region: np.ndarray, width: int, height: int) -> np.ndarray:
    """Smoothly scale an RGBA (7-bit alpha) region to ``width`` x ``height``."""
    vips = codec._get_pyvips_module()
    rgba8 = region.copy()
    rgba8[:, :, 3] = alpha7_to_alpha8(region[:, :, 3])
    image = codec.to_vips(rgba8)
    # thumbnail premultiplies alpha and picks shrink + lanczos for quality
    scaled = image.thumbnail_image(width, height=height, size=vips.Size.FORCE)
    out = codec.from_vips(scaled)
    if out.shape[:2] != (height, width):
        out = _fit(out, width, height)
    return PixelBuffer.from_rgba8(out).pixels


def _fit(array: np.ndarray, width: int, height: int) -> np.ndarray:
    # thumbnail may land one pixel off on extreme ratios; pad with edge pixels or trim
    pad_h = max(height - array.shape[0], 0)
    pad_w = max(width - array.shape[1], 0)
    if pad_h or pad_w:
        array = np.pad(array, ((0, pad_h), (0, pad_w), (0, 0)), mode="edge")
    return array[:height, :width]


def copy_resampled(dst: PixelBuffer, src: PixelBuffer, dst_rect: Rect, src_rect: Rect) -> None:
    """Scale ``src_rect`` of ``src`` onto ``dst_rect`` of ``dst``, replacing pixels."""
    src_rect = clamp_rect(src_rect, src.width, src.height)
    if src_rect.empty or dst_rect.empty:
        return
    region = src.pixels[src_rect.y : src_rect.bottom, src_rect.x : src_rect.right]
    if (src_rect.width, src_rect.height) == (dst_rect.width, dst_rect.height):
        scaled = region
    else:
        scaled = _scale(region, dst_rect.width, dst_rect.height)
    copy_plain(dst, PixelBuffer(np.ascontiguousarray(scaled)), dst_rect.x, dst_rect.y)


def execute_plan(
    src: PixelBuffer, plan: ResizePlan, fill_color: Sequence[int] = (0, 0, 0)
) -> PixelBuffer:
    """Run a resize plan against ``src`` and return the new buffer."""
    if plan.mode is ResizeMode.IDENTITY:
        return src
    canvas = new_canvas(plan.canvas_width, plan.canvas_height, fill_color, transparent=src.alpha_blending)
    canvas.alpha_blending = src.alpha_blending
    canvas.save_alpha = src.save_alpha
    if plan.mode is ResizeMode.RESAMPLE:
        copy_resampled(canvas, src, plan.dst, plan.src)
    else:
        copy_plain(canvas, src, plan.dst.x, plan.dst.y, plan.src)
    _logger.debug("resize %s: %s -> %s on %dx%d", plan.mode.value, plan.src, plan.dst, plan.canvas_width, plan.canvas_height)
    return canvas


def blend_over(base: np.ndarray, top: np.ndarray) -> np.ndarray:
    """Source-over blend of equally sized RGBA (7-bit alpha) arrays."""
    sa = top[:, :, 3:4].astype(np.int32)
    da = base[:, :, 3:4].astype(np.int32)
    src_w = ALPHA_TRANSPARENT - sa
    dst_w = (ALPHA_TRANSPARENT - da) * sa // ALPHA_TRANSPARENT
    total = np.maximum(src_w + dst_w, 1)
    rgb = (top[:, :, :3].astype(np.int32) * src_w + base[:, :, :3].astype(np.int32) * dst_w) // total
    alpha = sa * da // ALPHA_TRANSPARENT
    out = np.concatenate([rgb, alpha], axis=2).astype(np.uint8)

    # later rules take precedence: opaque source, then transparent source, then transparent base
    out = np.where(da == ALPHA_TRANSPARENT, top, out)
    out = np.where(sa == ALPHA_TRANSPARENT, base, out)
    out = np.where(sa == ALPHA_OPAQUE, top, out)
    return out


def overlay(base: PixelBuffer, top: PixelBuffer, x: int, y: int) -> None:
    """Composite ``top`` onto ``base`` at (x, y) honouring ``top``'s alpha.

    With alpha blending disabled on ``base`` the pixels are copied as is.
    ``top`` is never modified.
    """
    if not base.alpha_blending:
        copy_plain(base, top, x, y)
        return
    clipped = _clip(base, x, y, top, Rect(0, 0, top.width, top.height))
    if clipped is None:
        return
    d, s = clipped
    region = base.pixels[d.y : d.bottom, d.x : d.right]
    region[...] = blend_over(region, top.pixels[s.y : s.bottom, s.x : s.right])


def apply_opacity(buffer: PixelBuffer, percent: float) -> None:
    """Pull every pixel's alpha toward transparent: ``127 + percent/100 * (a - 127)``.

    The fractional result is truncated toward zero.
    """
    alpha = buffer.pixels[:, :, 3].astype(np.float64)
    scaled = ALPHA_TRANSPARENT + (percent / 100.0) * (alpha - ALPHA_TRANSPARENT)
    buffer.pixels[:, :, 3] = np.clip(np.trunc(scaled), ALPHA_OPAQUE, ALPHA_TRANSPARENT).astype(np.uint8)


def fill_rect(buffer: PixelBuffer, rect: Rect, color: Sequence[int]) -> None:
    rect = clamp_rect(rect, buffer.width, buffer.height)
    if rect.empty:
        return
    rgba = as_rgba(color)
    region = buffer.pixels[rect.y : rect.bottom, rect.x : rect.right]
    if buffer.alpha_blending and rgba[3] != ALPHA_OPAQUE:
        solid = np.empty_like(region)
        solid[...] = rgba
        region[...] = blend_over(region, solid)
    else:
        region[...] = rgba


def flip(buffer: PixelBuffer, horizontal: bool) -> None:
    buffer.pixels = np.ascontiguousarray(buffer.pixels[:, ::-1] if horizontal else buffer.pixels[::-1])


def rotate(
    buffer: PixelBuffer,
    angle: float,
    bg_color: Sequence[int] | None = None,
    ignore_transparent: bool = False,
) -> PixelBuffer:
    """Rotate counter-clockwise by ``angle`` degrees into a new buffer.

    Quarter turns are exact. Other angles grow the canvas to the rotated
    bounding box; uncovered corners take ``bg_color`` (transparent when None).
    """
    turns, rest = divmod(float(angle) % _FULL_TURN, _RIGHT_ANGLE)
    if rest == 0:
        pixels = np.rot90(buffer.pixels, k=int(turns))
    else:
        pixels = _rotate_free(buffer.pixels, float(angle), bg_color)
    rotated = buffer.with_pixels(pixels)
    if ignore_transparent:
        rotated.pixels[:, :, 3] = ALPHA_OPAQUE
    return rotated


def _rotate_free(pixels: np.ndarray, angle: float, bg_color: Sequence[int] | None) -> np.ndarray:
    r, g, b, a7 = as_rgba(bg_color) if bg_color is not None else (0, 0, 0, ALPHA_TRANSPARENT)
    a8 = int(alpha7_to_alpha8(np.array([a7]))[0])
    background = [r * a8 / 255.0, g * a8 / 255.0, b * a8 / 255.0, a8]

    rgba8 = pixels.copy()
    rgba8[:, :, 3] = alpha7_to_alpha8(pixels[:, :, 3])
    image = codec.to_vips(rgba8).premultiply()
    # vips turns clockwise with y pointing down
    turned = image.rotate(-angle, background=background).unpremultiply()
    return PixelBuffer.from_rgba8(codec.from_vips(turned)).pixels
