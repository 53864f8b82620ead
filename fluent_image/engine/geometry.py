"""Pure sizing arithmetic for crop and resize.

Nothing in here touches pixels. ``plan_resize`` decides which of the four
resize strategies applies and computes the source and destination
rectangles; the compositor executes the plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


def php_round(value: float, precision: int = 0) -> float:
    """Round half away from zero at ``precision`` decimals."""
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_int(value: float) -> int:
    return int(php_round(value))


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class ResizeMode(str, Enum):
    IDENTITY = "identity"
    CENTER_CROP = "center-crop"
    PAD_COPY = "pad-copy"
    RESAMPLE = "resample"


@dataclass(frozen=True)
class ResizePlan:
    mode: ResizeMode
    src: Rect
    dst: Rect
    canvas_width: int
    canvas_height: int

    @property
    def letterboxed(self) -> bool:
        """True when the destination rectangle does not cover the whole canvas."""
        return self.dst != Rect(0, 0, self.canvas_width, self.canvas_height)


def compute_crop(x1: int, y1: int, x2: int, y2: int) -> Rect:
    """Normalize two corners into a rectangle; reversed corners are swapped."""
    if x1 > x2:
        x1, x2 = x2, x1
    if y1 > y2:
        y1, y2 = y2, y1
    return Rect(int(x1), int(y1), int(x2 - x1), int(y2 - y1))


def clamp_rect(rect: Rect, width: int, height: int) -> Rect:
    """Intersect ``rect`` with a ``width`` x ``height`` buffer."""
    left = min(max(rect.x, 0), width)
    top = min(max(rect.y, 0), height)
    right = min(max(rect.right, 0), width)
    bottom = min(max(rect.bottom, 0), height)
    return Rect(left, top, max(right - left, 0), max(bottom - top, 0))


def plan_resize(
    src_w: int, src_h: int, dst_w: int, dst_h: int, crop: bool = False, proportional: bool = True
) -> ResizePlan:
    if dst_w <= 0 or dst_h <= 0:
        raise ValueError(f"invalid target size {dst_w}x{dst_h}")

    full_src = Rect(0, 0, src_w, src_h)
    full_dst = Rect(0, 0, dst_w, dst_h)

    if src_w == dst_w and src_h == dst_h:
        return ResizePlan(ResizeMode.IDENTITY, full_src, full_dst, dst_w, dst_h)

    # One axis unchanged: either a centered crop or a centered pad, no resampling.
    if crop and src_w > dst_w and src_h == dst_h:
        x = round_int((src_w - dst_w) / 2)
        return ResizePlan(ResizeMode.CENTER_CROP, Rect(x, 0, dst_w, dst_h), full_dst, dst_w, dst_h)
    if crop and src_h > dst_h and src_w == dst_w:
        y = round_int((src_h - dst_h) / 2)
        return ResizePlan(ResizeMode.CENTER_CROP, Rect(0, y, dst_w, dst_h), full_dst, dst_w, dst_h)
    if not crop and dst_w > src_w and src_h == dst_h:
        x = round_int((dst_w - src_w) / 2)
        return ResizePlan(ResizeMode.PAD_COPY, full_src, Rect(x, 0, src_w, src_h), dst_w, dst_h)
    if not crop and dst_h > src_h and src_w == dst_w:
        y = round_int((dst_h - src_h) / 2)
        return ResizePlan(ResizeMode.PAD_COPY, full_src, Rect(0, y, src_w, src_h), dst_w, dst_h)

    src_x, src_y, src_width, src_height = 0, 0, src_w, src_h
    dst_x, dst_y, dst_width, dst_height = 0, 0, dst_w, dst_h
    if proportional:
        old_ratio = php_round(src_w / src_h, 2)
        new_ratio = php_round(dst_w / dst_h, 2)
        if old_ratio > new_ratio:
            # wide source into a narrower target
            if crop:
                kept = src_h * new_ratio
                src_width = round_int(kept)
                src_x = round_int((src_w - kept) / 2)
            else:
                dst_height = round_int(dst_w / old_ratio)
                dst_y = round_int((dst_h - dst_height) / 2)
        elif old_ratio < new_ratio:
            if crop:
                kept = src_w / new_ratio
                src_height = round_int(kept)
                src_y = round_int((src_h - kept) / 2)
            else:
                dst_width = round_int(dst_h * old_ratio)
                dst_x = round_int((dst_w - dst_width) / 2)

    return ResizePlan(
        ResizeMode.RESAMPLE,
        Rect(src_x, src_y, src_width, src_height),
        Rect(dst_x, dst_y, dst_width, dst_height),
        dst_w,
        dst_h,
    )
