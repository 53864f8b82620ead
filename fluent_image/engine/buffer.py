"""In-memory RGBA pixel buffer.

Pixels live in a ``(height, width, 4)`` uint8 numpy array. The fourth channel
is a 7-bit alpha: 0 is fully opaque and 127 fully transparent. Conversion to
and from ordinary 8-bit alpha happens only at the codec boundary.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

ALPHA_OPAQUE = 0
ALPHA_TRANSPARENT = 127
RGBA_CHANNELS = 4
RGB_CHANNELS = 3


def alpha8_to_alpha7(alpha8: np.ndarray) -> np.ndarray:
    return (ALPHA_TRANSPARENT - (alpha8.astype(np.uint8) >> 1)).astype(np.uint8)


def alpha7_to_alpha8(alpha7: np.ndarray) -> np.ndarray:
    a = alpha7.astype(np.int32)
    return (255 - ((a << 1) + (a >> 6))).astype(np.uint8)


def as_rgba(color: Sequence[int]) -> tuple[int, int, int, int]:
    """Normalize an RGB or RGBA (7-bit alpha) colour to a 4-tuple."""
    if len(color) == RGB_CHANNELS:
        r, g, b = color
        return int(r), int(g), int(b), ALPHA_OPAQUE
    if len(color) == RGBA_CHANNELS:
        r, g, b, a = color
        return int(r), int(g), int(b), min(max(int(a), ALPHA_OPAQUE), ALPHA_TRANSPARENT)
    raise ValueError(f"expected an RGB or RGBA colour, got {color!r}")


class PixelBuffer:
    def __init__(self, pixels: np.ndarray, alpha_blending: bool = False, save_alpha: bool = True):
        if pixels.ndim != 3 or pixels.shape[2] != RGBA_CHANNELS or pixels.dtype != np.uint8:
            raise ValueError(f"expected a (h, w, 4) uint8 array, got {pixels.shape} {pixels.dtype}")
        self.pixels = pixels
        self.alpha_blending = alpha_blending
        self.save_alpha = save_alpha

    @classmethod
    def allocate(cls, width: int, height: int, color: Sequence[int] = (0, 0, 0)) -> PixelBuffer:
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid buffer size {width}x{height}")
        pixels = np.empty((height, width, RGBA_CHANNELS), dtype=np.uint8)
        pixels[...] = as_rgba(color)
        return cls(pixels)

    @classmethod
    def from_rgba8(cls, array: np.ndarray) -> PixelBuffer:
        """Build a buffer from an 8-bit RGB/RGBA array (255 = opaque)."""
        if array.ndim == 2:
            array = array[:, :, None]
        h, w, c = array.shape
        pixels = np.empty((h, w, RGBA_CHANNELS), dtype=np.uint8)
        if c in (1, 2):
            pixels[:, :, :3] = array[:, :, :1]
        else:
            pixels[:, :, :3] = array[:, :, :3]
        if c in (2, RGBA_CHANNELS):
            pixels[:, :, 3] = alpha8_to_alpha7(array[:, :, -1])
        else:
            pixels[:, :, 3] = ALPHA_OPAQUE
        return cls(pixels)

    def to_rgba8(self) -> np.ndarray:
        out = self.pixels.copy()
        out[:, :, 3] = alpha7_to_alpha8(self.pixels[:, :, 3])
        return out

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def get_pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def set_pixel(self, x: int, y: int, color: Sequence[int]) -> None:
        if 0 <= x < self.width and 0 <= y < self.height:
            self.pixels[y, x] = as_rgba(color)

    def fill(self, color: Sequence[int]) -> None:
        self.pixels[...] = as_rgba(color)

    def has_transparency(self) -> bool:
        return bool((self.pixels[:, :, 3] != ALPHA_OPAQUE).any())

    def copy(self) -> PixelBuffer:
        return PixelBuffer(self.pixels.copy(), self.alpha_blending, self.save_alpha)

    def with_pixels(self, pixels: np.ndarray) -> PixelBuffer:
        """New buffer for ``pixels`` carrying over this buffer's alpha flags."""
        return PixelBuffer(np.ascontiguousarray(pixels), self.alpha_blending, self.save_alpha)

    def __repr__(self) -> str:
        return (
            f"PixelBuffer({self.width}x{self.height}, "
            f"alpha_blending={self.alpha_blending}, save_alpha={self.save_alpha})"
        )
