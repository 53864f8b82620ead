"""Fluent image manipulation on top of libvips.

    from fluent_image import Image

    Image("test.jpg").resize(300, 200, crop=True).merge("logo.png", "right", "bottom").save("new.jpg")
"""

from .engine.buffer import PixelBuffer
from .engine.codec import is_animated
from .engine.compositor import Absolute, Anchor
from .errors import (
    DecodeFailure,
    EncodeFailure,
    ImageError,
    MemoryLimitExceeded,
    NoBufferLoaded,
    Outcome,
    OverlayLoadFailure,
    SourceNotFound,
    TextMeasurementFailure,
    UnavailableBackend,
    UnsupportedFormat,
)
from .image import Image
from .settings import ImageConfig, TextOptions

__all__ = [
    "Absolute",
    "Anchor",
    "DecodeFailure",
    "EncodeFailure",
    "Image",
    "ImageConfig",
    "ImageError",
    "MemoryLimitExceeded",
    "NoBufferLoaded",
    "Outcome",
    "OverlayLoadFailure",
    "PixelBuffer",
    "SourceNotFound",
    "TextMeasurementFailure",
    "TextOptions",
    "UnavailableBackend",
    "UnsupportedFormat",
    "is_animated",
]
