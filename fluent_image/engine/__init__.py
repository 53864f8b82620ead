"""Image engine: pixel buffer, sizing arithmetic, compositing and codec adapters.

Usage:
    from fluent_image.engine import geometry

    plan = geometry.plan_resize(200, 100, 100, 100, crop=True)
    plan.mode  # ResizeMode.CENTER_CROP
"""

from .buffer import PixelBuffer
from .geometry import Rect, ResizeMode, ResizePlan, compute_crop, plan_resize

__all__ = [
    "PixelBuffer",
    "Rect",
    "ResizeMode",
    "ResizePlan",
    "compute_crop",
    "plan_resize",
]
