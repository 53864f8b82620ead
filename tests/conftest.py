"""Pytest configuration and image fixtures.

Fixture images are written with Pillow from numpy arrays so every test starts
from exact, known pixels. Tests that need libvips call
``pytest.importorskip("pyvips")`` themselves.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest


@pytest.fixture
def write_image(tmp_path: Path) -> Callable[..., Path]:
    """Write an (h, w, 3|4) uint8 array to ``tmp_path/name`` and return the path."""
    PILImage = pytest.importorskip("PIL.Image")

    def _write(array: np.ndarray, name: str = "image.png", **save_kwargs) -> Path:
        path = tmp_path / name
        mode = "RGBA" if array.shape[2] == 4 else "RGB"
        PILImage.fromarray(np.ascontiguousarray(array, dtype=np.uint8), mode).save(path, **save_kwargs)
        return path

    return _write


@pytest.fixture
def gradient() -> Callable[[int, int], np.ndarray]:
    """RGB array where red = x and green = y (mod 256), blue = 7."""

    def _make(width: int, height: int) -> np.ndarray:
        ys, xs = np.mgrid[0:height, 0:width]
        arr = np.empty((height, width, 3), dtype=np.uint8)
        arr[:, :, 0] = xs % 256
        arr[:, :, 1] = ys % 256
        arr[:, :, 2] = 7
        return arr

    return _make


@pytest.fixture
def solid() -> Callable[..., np.ndarray]:
    """Array of one colour; the channel count follows the colour tuple."""

    def _make(width: int, height: int, color: tuple[int, ...]) -> np.ndarray:
        arr = np.empty((height, width, len(color)), dtype=np.uint8)
        arr[...] = color
        return arr

    return _make
