from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")

DEFAULT_MEMORY_LIMIT = 134217728  # 128 MiB

_SIZE_UNITS = {"K": 1024, "M": 1024**2, "G": 1024**3}

RGB = tuple[int, int, int]


def parse_memory_limit(value: str | int | None) -> int | None:
    """Parse a memory size such as ``"128M"``, ``"512K"``, ``"1G"`` or ``"1048576"``.

    Returns None for empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = value.strip()
    if not text:
        return None
    unit = text[-1].upper()
    try:
        if unit in _SIZE_UNITS:
            return int(text[:-1]) * _SIZE_UNITS[unit]
        return int(text)
    except ValueError:
        _logger.warning("invalid memory limit: %r", value)
        return None


def _as_rgb(value: Any) -> RGB:
    r, g, b = (int(c) for c in value)
    return (r, g, b)


@dataclass(frozen=True)
class TextOptions:
    """Defaults for add_text/get_text_size; ``font=None`` means Pillow's built-in font."""

    font: str | None = None
    size: int = 20
    angle: float = 0
    x: int = 0
    y: int = 0
    color: RGB = (0, 0, 0)

    def merged(self, **overrides: Any) -> TextOptions:
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise TypeError(f"unknown text options: {', '.join(sorted(unknown))}")
        if "color" in overrides:
            overrides["color"] = _as_rgb(overrides["color"])
        return replace(self, **overrides)


@dataclass(frozen=True)
class ImageConfig:
    memory_limit: int = DEFAULT_MEMORY_LIMIT
    fill_color: RGB = (0, 0, 0)
    jpeg_quality: int = 80
    png_compression: int = 0
    text_options: TextOptions = field(default_factory=TextOptions)

    def __post_init__(self) -> None:
        if self.memory_limit < 0:
            raise ValueError("memory_limit must be non-negative (0 disables the check)")
        if not 0 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be within 0-100")
        if not 0 <= self.png_compression <= 9:
            raise ValueError("png_compression must be within 0-9")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> ImageConfig:
        kwargs: dict[str, Any] = {}
        limit = parse_memory_limit(data.get("memory_limit"))
        if limit is not None:
            kwargs["memory_limit"] = limit
        if "fill_color" in data:
            kwargs["fill_color"] = _as_rgb(data["fill_color"])
        for key in ("jpeg_quality", "png_compression"):
            if key in data:
                kwargs[key] = int(data[key])
        text = data.get("text_options")
        if isinstance(text, dict):
            kwargs["text_options"] = TextOptions().merged(**text)
        return cls(**kwargs)

    @classmethod
    def from_file(cls, settings_path: str) -> ImageConfig:
        """Load a JSON settings file; a missing or unreadable file yields defaults."""
        try:
            if os.path.exists(settings_path):
                with open(settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    config = cls.from_mapping(data)
                    _logger.debug("settings loaded: %s", settings_path)
                    return config
        except (OSError, ValueError, TypeError) as e:
            _logger.warning("settings load failed: %s", e)
        return cls()

    @classmethod
    def from_env(cls, base: ImageConfig | None = None) -> ImageConfig:
        """Apply FLUENT_IMAGE_* environment overrides on top of ``base``."""
        config = base or cls()
        overrides: dict[str, Any] = {}
        limit = parse_memory_limit(os.getenv("FLUENT_IMAGE_MEMORY_LIMIT"))
        if limit is not None:
            overrides["memory_limit"] = limit
        for key, env in (("jpeg_quality", "FLUENT_IMAGE_JPEG_QUALITY"), ("png_compression", "FLUENT_IMAGE_PNG_COMPRESSION")):
            raw = (os.getenv(env) or "").strip()
            if raw:
                try:
                    overrides[key] = int(raw)
                except ValueError:
                    _logger.warning("ignoring %s=%r", env, raw)
        return replace(config, **overrides) if overrides else config

    def save(self, settings_path: str) -> None:
        os.makedirs(os.path.dirname(settings_path) or ".", exist_ok=True)
        data = {
            "memory_limit": self.memory_limit,
            "fill_color": list(self.fill_color),
            "jpeg_quality": self.jpeg_quality,
            "png_compression": self.png_compression,
            "text_options": {
                "font": self.text_options.font,
                "size": self.text_options.size,
                "angle": self.text_options.angle,
                "x": self.text_options.x,
                "y": self.text_options.y,
                "color": list(self.text_options.color),
            },
        }
        with open(settings_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        _logger.debug("settings saved: %s", settings_path)
