"""The chainable Image pipeline.

Example:
    logo = Image("logo.png")
    logo.opacity(30).save("newlogo.png")

    image = Image("test.jpg")
    result = image.resize(300, 200, crop=True).merge(logo, "right", "bottom").save("new.jpg")
    if not result.ok:
        ...
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from fluent_image.errors import EncodeFailure, ImageError, NoBufferLoaded, Outcome, OverlayLoadFailure
from fluent_image.logger import get_logger
from fluent_image.settings import ImageConfig, TextOptions

from .engine import codec, compositor, orientation, text
from .engine.buffer import PixelBuffer
from .engine.compositor import Position
from .engine.geometry import Rect, clamp_rect, compute_crop, plan_resize

_logger = get_logger("image")


class Image:
    def __init__(self, source: str | os.PathLike, config: ImageConfig | None = None):
        """Decode the image at ``source``.

        Raises UnavailableBackend, SourceNotFound, MemoryLimitExceeded,
        UnsupportedFormat or DecodeFailure; no Image exists on failure.
        """
        self._init_state(config)
        self.source_path: str | None = os.fspath(source)
        self._load(source)

    @classmethod
    def from_bytes(cls, data: bytes, config: ImageConfig | None = None) -> Image:
        image = cls.__new__(cls)
        image._init_state(config)
        image.source_path = None
        image._load(data)
        if image.source_format == "gif":
            image._gif_data = bytes(data)
        return image

    @classmethod
    def from_buffer(
        cls, buffer: PixelBuffer, source_format: str = "png", config: ImageConfig | None = None
    ) -> Image:
        """Wrap an existing buffer; the Image takes ownership of it."""
        image = cls.__new__(cls)
        image._init_state(config)
        image.source_path = None
        image.source_format = source_format
        image.buffer = buffer
        return image

    def _init_state(self, config: ImageConfig | None) -> None:
        self.config = config or ImageConfig()
        # both backends are checked up front so a missing one fails at construction
        codec._get_pyvips_module()
        text.require_font_backend()
        self.buffer: PixelBuffer | None = None
        self.source_format: str | None = None
        self.fill_color: tuple[int, int, int] = tuple(self.config.fill_color)  # type: ignore[assignment]
        self.jpeg_quality = self.config.jpeg_quality
        self.png_compression = self.config.png_compression
        self.text_options: TextOptions = self.config.text_options
        self._gif_data: bytes | None = None

    def _load(self, source: str | os.PathLike | bytes) -> None:
        buffer, info = codec.decode(source, self.config.memory_limit)
        self.buffer = buffer
        self.source_format = info.format
        orientation.normalize(self, info.orientation, info.format)

    # ---- state ------------------------------------------------------
    def _require_buffer(self, operation: str) -> PixelBuffer:
        if self.buffer is None:
            raise NoBufferLoaded(operation)
        return self.buffer

    @property
    def width(self) -> int:
        return self.buffer.width if self.buffer is not None else 0

    @property
    def height(self) -> int:
        return self.buffer.height if self.buffer is not None else 0

    def image_type(self) -> str | None:
        return self.source_format

    def is_animated(self) -> bool:
        if self.source_format != "gif":
            return False
        source = self.source_path if self.source_path is not None else self._gif_data
        return source is not None and codec.is_animated(source)

    def alpha(self, blending: bool = False, save_alpha: bool = True) -> Image:
        buffer = self._require_buffer("alpha")
        buffer.alpha_blending = blending
        buffer.save_alpha = save_alpha
        return self

    def set_fill_color(self, color: Sequence[int]) -> Image:
        r, g, b = (int(c) for c in color[:3])
        self.fill_color = (r, g, b)
        return self

    def close(self) -> None:
        """Discard the pixel buffer."""
        self.buffer = None

    # ---- geometry ---------------------------------------------------
    def resize(self, width: int, height: int, crop: bool = False, proportional: bool = True) -> Image:
        """Resize to ``width`` x ``height``.

        ``crop`` covers the target and cuts the overflow; otherwise the image
        is contained and the remainder padded with the fill colour (or left
        transparent when alpha blending is on). ``proportional=False``
        stretches.
        """
        buffer = self._require_buffer("resize")
        plan = plan_resize(buffer.width, buffer.height, int(width), int(height), crop, proportional)
        self.buffer = compositor.execute_plan(buffer, plan, self.fill_color)
        return self

    def crop(self, x1: int, y1: int, x2: int, y2: int) -> Image:
        """Keep the region between two corners, given in any order.

        The region is clamped to the image; an empty result keeps the image as is.
        """
        buffer = self._require_buffer("crop")
        rect = clamp_rect(compute_crop(x1, y1, x2, y2), buffer.width, buffer.height)
        if rect.empty:
            _logger.warning("crop (%s, %s, %s, %s) outside %dx%d image; ignored", x1, y1, x2, y2, *buffer.size)
            return self
        pixels = buffer.pixels[rect.y : rect.bottom, rect.x : rect.right]
        self.buffer = buffer.with_pixels(pixels.copy())
        _logger.debug("crop %s", rect)
        return self

    def rotate(self, angle: float, bg_color: Sequence[int] | None = None, ignore_transparent: bool = False) -> Image:
        """Rotate counter-clockwise by ``angle`` degrees."""
        self.alpha()
        self.buffer = compositor.rotate(self._require_buffer("rotate"), angle, bg_color, ignore_transparent)
        self.alpha()
        _logger.debug("rotate %s -> %dx%d", angle, self.width, self.height)
        return self

    def flip_horizontal(self) -> Image:
        compositor.flip(self._require_buffer("flip_horizontal"), horizontal=True)
        return self

    def flip_vertical(self) -> Image:
        compositor.flip(self._require_buffer("flip_vertical"), horizontal=False)
        return self

    # ---- compositing ------------------------------------------------
    def merge(
        self, overlay: Image | PixelBuffer | str | os.PathLike, pos_x: Position | int | str, pos_y: Position | int | str
    ) -> Outcome:
        """Draw ``overlay`` on top of this image; ``overlay`` is left untouched."""
        if self.buffer is None:
            return Outcome(error=NoBufferLoaded("merge"))

        if isinstance(overlay, (str, os.PathLike)):
            try:
                overlay = Image(overlay, self.config)
            except ImageError as e:
                _logger.debug("merge: overlay %s failed to load: %s", overlay, e)
                return Outcome(error=OverlayLoadFailure(os.fspath(overlay), e))
        top = overlay.buffer if isinstance(overlay, Image) else overlay
        if top is None:
            return Outcome(error=NoBufferLoaded("merge overlay"))

        x = compositor.resolve_position(pos_x, self.buffer.width, top.width)
        y = compositor.resolve_position(pos_y, self.buffer.height, top.height)
        self.alpha(True, False)
        compositor.overlay(self.buffer, top, x, y)
        _logger.debug("merge %dx%d at (%d, %d)", top.width, top.height, x, y)
        return Outcome(image=self)

    def opacity(self, percent: float) -> Outcome:
        """Fade toward transparent; 100 keeps the image, 0 makes it invisible."""
        if self.buffer is None:
            return Outcome(error=NoBufferLoaded("opacity"))
        self.alpha()
        compositor.apply_opacity(self.buffer, percent)
        return Outcome(image=self)

    # ---- drawing ----------------------------------------------------
    def add_text(self, value: str, **options: Any) -> Image:
        text.draw_text(self._require_buffer("add_text"), value, self.text_options.merged(**options))
        return self

    def get_text_size(self, value: str, **options: Any) -> dict[str, int]:
        return text.measure_text(value, self.text_options.merged(**options))

    def add_rectangle(self, x1: int, y1: int, x2: int, y2: int, color: Sequence[int]) -> Image:
        """Fill the rectangle between two corners, both corners included."""
        rect = compute_crop(x1, y1, x2, y2)
        compositor.fill_rect(
            self._require_buffer("add_rectangle"), Rect(rect.x, rect.y, rect.width + 1, rect.height + 1), color
        )
        return self

    # ---- output -----------------------------------------------------
    def encode(self, format: str | None = None) -> bytes:
        buffer = self._require_buffer("encode")
        return codec.encode(buffer, format, quality=self.jpeg_quality, compression=self.png_compression)

    def save(self, destination: str | os.PathLike, format: str | None = None) -> Outcome:
        """Encode and write to ``destination``.

        The format comes from ``format`` or the destination's extension;
        unknown or missing extensions are written as JPEG.
        """
        if self.buffer is None:
            return Outcome(error=NoBufferLoaded("save"))
        fmt = format or codec.format_from_path(destination)
        try:
            data = self.encode(fmt)
            Path(destination).write_bytes(data)
        except EncodeFailure as e:
            _logger.error("save failed: %s", e, exc_info=True)
            return Outcome(error=e)
        except OSError as e:
            _logger.error("save failed: %s", e, exc_info=True)
            return Outcome(error=EncodeFailure(f"cannot write {os.fspath(destination)}: {e}"))
        _logger.info("saved %s (%s, %dx%d)", os.fspath(destination), codec.normalize_format(fmt), self.width, self.height)
        return Outcome(image=self)

    def __repr__(self) -> str:
        return f"Image({self.source_path or '<memory>'}, {self.width}x{self.height}, {self.source_format})"
