"""Image codec adapter using pyvips.

Decodes GIF/JPEG/PNG/WebP into a PixelBuffer and encodes a PixelBuffer back
into any of those formats. The memory admission check runs on the lazily
opened header, before any pixel data is read.
"""

from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from fluent_image.errors import (
    DecodeFailure,
    EncodeFailure,
    MemoryLimitExceeded,
    SourceNotFound,
    UnavailableBackend,
    UnsupportedFormat,
)
from fluent_image.logger import get_logger

from .buffer import RGB_CHANNELS, RGBA_CHANNELS, PixelBuffer

_logger = get_logger("codec")

try:
    import pyvips  # type: ignore
except ImportError:
    pyvips = None  # type: ignore
    _logger.warning("pyvips is not available; decoding and encoding will raise UnavailableBackend")

# loader name prefix -> source format
_LOADERS = {"jpeg": "jpg", "png": "png", "gif": "gif", "webp": "webp"}
SUPPORTED_FORMATS = frozenset(_LOADERS.values())
PNG_FORMATS = frozenset({"png", "png8", "png24"})
# formats whose encoders keep an alpha band
_ALPHA_FORMATS = frozenset({"png", "webp", "gif"})

_BITS_PER_SAMPLE = {
    "uchar": 8,
    "char": 8,
    "ushort": 16,
    "short": 16,
    "uint": 32,
    "int": 32,
    "float": 32,
    "double": 64,
    "complex": 64,
    "dpcomplex": 128,
}

_GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
_GCE_MARKER = b"\x00\x21\xf9\x04"
_DESCRIPTOR_MARKER = b"\x00\x2c"
_GCE_TO_DESCRIPTOR = 8

_cache_configured = False

Source = str | os.PathLike | bytes


def _get_pyvips_module() -> Any:
    """Return the pyvips module or raise UnavailableBackend."""
    global _cache_configured
    if pyvips is None:
        _logger.error("pyvips requested but not available")
        raise UnavailableBackend("pyvips is not available")
    if not _cache_configured:
        # Configure pyvips caches to avoid memory growth
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _cache_configured = True
    return pyvips


@dataclass(frozen=True)
class SourceInfo:
    width: int
    height: int
    bands: int
    bits: int
    format: str
    orientation: int | None = None

    @property
    def footprint(self) -> int:
        """Bytes needed to hold the decoded pixels."""
        return self.width * self.height * (self.bands * self.bits // 8)


def _describe(source: Source) -> str:
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return os.fspath(source)


def _open_lazy(source: Source) -> Any:
    vips = _get_pyvips_module()
    if isinstance(source, bytes):
        if not source:
            raise UnsupportedFormat("empty image data")
        try:
            return vips.Image.new_from_buffer(source, "")
        except vips.Error as e:
            raise UnsupportedFormat(f"unrecognised image data: {e}") from e

    path = os.fspath(source)
    if not os.path.exists(path):
        raise SourceNotFound(f"Image {path} does not exist")
    try:
        return vips.Image.new_from_file(path)
    except vips.Error as e:
        raise UnsupportedFormat(f"unrecognised image file {path}: {e}") from e


def _source_format(image: Any) -> str | None:
    try:
        loader = str(image.get("vips-loader"))
    except Exception:
        return None
    for prefix, fmt in _LOADERS.items():
        if loader.startswith(prefix):
            return fmt
    return None


def _orientation(image: Any) -> int | None:
    try:
        if image.get_typeof("orientation") == 0:
            return None
        return int(image.get("orientation"))
    except Exception:
        return None


def probe(source: Source) -> tuple[Any, SourceInfo]:
    """Open ``source`` lazily and read its header. No pixels are decoded."""
    image = _open_lazy(source)
    fmt = _source_format(image)
    if fmt is None:
        raise UnsupportedFormat("Supported formats are gif, jpg, png & webp only")
    info = SourceInfo(
        width=int(image.width),
        height=int(image.height),
        bands=int(image.bands),
        bits=_BITS_PER_SAMPLE.get(str(image.format), 8),
        format=fmt,
        orientation=_orientation(image),
    )
    return image, info


def check_memory(info: SourceInfo, memory_limit: int) -> None:
    if memory_limit > 0 and info.footprint > memory_limit:
        raise MemoryLimitExceeded(info.footprint, memory_limit)


def _materialize(image: Any) -> np.ndarray:
    """Decode pixels into an 8-bit RGBA array."""
    if image.interpretation not in ("srgb", "b-w") or image.format != "uchar":
        image = image.colourspace("srgb")
    if image.bands < RGB_CHANNELS:
        grey = image.extract_band(0)
        extra = [image.extract_band(1)] if image.hasalpha() else []
        image = grey.bandjoin([grey, grey, *extra])
    if not image.hasalpha() and image.bands == RGB_CHANNELS:
        image = image.bandjoin(255)
    if image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)
    if image.format != "uchar":
        image = image.cast("uchar")
    mem = image.write_to_memory()
    return np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, RGBA_CHANNELS).copy()


def decode(source: Source, memory_limit: int = 0) -> tuple[PixelBuffer, SourceInfo]:
    """Decode ``source`` (a path or encoded bytes) into a PixelBuffer.

    Raises SourceNotFound, UnsupportedFormat, MemoryLimitExceeded or DecodeFailure.
    """
    vips = _get_pyvips_module()
    image, info = probe(source)
    check_memory(info, memory_limit)
    try:
        array = _materialize(image)
    except vips.Error as e:
        raise DecodeFailure(f"Error while reading {_describe(source)}: {e}") from e
    if array.shape[:2] != (info.height, info.width):
        raise DecodeFailure(f"Error while reading {_describe(source)}: unexpected size {array.shape}")
    _logger.debug("decoded %s: %dx%d %s", _describe(source), info.width, info.height, info.format)
    return PixelBuffer.from_rgba8(array), info


def to_vips(array: np.ndarray) -> Any:
    """Wrap an 8-bit RGBA array as a pyvips image."""
    vips = _get_pyvips_module()
    array = np.ascontiguousarray(array, dtype=np.uint8)
    h, w, bands = array.shape
    image = vips.Image.new_from_memory(array.tobytes(), w, h, bands, "uchar")
    return image.copy(interpretation="srgb")


def from_vips(image: Any) -> np.ndarray:
    if image.format != "uchar":
        image = image.cast("uchar")
    mem = image.write_to_memory()
    return np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands).copy()


def normalize_format(fmt: str | None) -> str:
    """Map a format name or file extension to an encoder; anything unknown is jpeg."""
    fmt = (fmt or "").strip().lower().lstrip(".")
    if fmt in PNG_FORMATS:
        return "png"
    if fmt in ("webp", "gif"):
        return fmt
    return "jpg"


def format_from_path(path: str | os.PathLike) -> str:
    name = Path(path).name
    dot = name.rfind(".")
    return name[dot + 1 :].lower() if dot >= 1 else ""


def encode(buffer: PixelBuffer, fmt: str | None, quality: int = 80, compression: int = 0) -> bytes:
    """Encode ``buffer``; ``quality`` applies to jpeg/webp, ``compression`` (0-9) to png."""
    vips = _get_pyvips_module()
    target = normalize_format(fmt)
    array = buffer.to_rgba8()
    if not (buffer.save_alpha and target in _ALPHA_FORMATS):
        array = array[:, :, :RGB_CHANNELS]
    try:
        image = to_vips(array)
        if target == "png":
            return bytes(image.write_to_buffer(".png", compression=int(compression)))
        if target == "webp":
            return bytes(image.write_to_buffer(".webp", Q=int(quality)))
        if target == "gif":
            return bytes(image.write_to_buffer(".gif"))
        return bytes(image.write_to_buffer(".jpg", Q=int(quality)))
    except vips.Error as e:
        raise EncodeFailure(f"{target} encode failed: {e}") from e


def is_animated(source: str | os.PathLike | bytes) -> bool:
    """Return True for a GIF holding at least two frames with graphic-control blocks."""
    if isinstance(source, bytes):
        data = source
    else:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            _logger.debug("is_animated: cannot read %s: %s", source, e)
            return False
    if not data.startswith(_GIF_SIGNATURES):
        return False

    position = 0
    count = 0
    # no need to continue when we find the second frame
    while count < 2:
        gce = data.find(_GCE_MARKER, position)
        if gce < 0:
            break
        position = gce + 1
        descriptor = data.find(_DESCRIPTOR_MARKER, position)
        if descriptor < 0:
            break
        if gce + _GCE_TO_DESCRIPTOR == descriptor:
            count += 1
        position = descriptor + 1
    return count > 1
