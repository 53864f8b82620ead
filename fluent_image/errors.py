"""Error types and the Outcome result used by failure-capable operations.

Load-time problems (missing backend, missing file, memory ceiling, unknown
format, broken data) are raised from the ``Image`` constructors. Operations
that may legitimately fail mid-chain (``merge``, ``opacity``, ``save``) return
an :class:`Outcome` instead, so the caller decides whether to keep going.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fluent_image.image import Image


class ImageError(Exception):
    """Base class for all fluent_image errors."""


class UnavailableBackend(ImageError):
    """pyvips or Pillow could not be imported."""


class SourceNotFound(ImageError):
    pass


class MemoryLimitExceeded(ImageError):
    def __init__(self, required: int, limit: int):
        super().__init__(f"Image needs {required} bytes, larger than memory limit {limit}")
        self.required = required
        self.limit = limit


class UnsupportedFormat(ImageError):
    """Source is not gif, jpg, png or webp."""


class DecodeFailure(ImageError):
    pass


class EncodeFailure(ImageError):
    pass


class NoBufferLoaded(ImageError):
    def __init__(self, operation: str):
        super().__init__(f"{operation}: no pixel buffer loaded")
        self.operation = operation


class TextMeasurementFailure(ImageError):
    pass


class OverlayLoadFailure(ImageError):
    def __init__(self, source: str, cause: ImageError):
        super().__init__(f"Overlay error: {cause}")
        self.source = source
        self.cause = cause


@dataclass(frozen=True)
class Outcome:
    """Either the updated image or the error that stopped the chain.

    Attribute access forwards to the image while successful, so calls keep
    chaining; once an error is carried every further call is skipped and the
    same failed Outcome is returned::

        result = Image("in.jpg").resize(300, 200).merge("logo.png", "right", "bottom").save("out.jpg")
        if not result.ok:
            print(result.error)
    """

    image: Image | None = None
    error: ImageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> Image:
        if self.error is not None:
            raise self.error
        assert self.image is not None
        return self.image

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if self.error is not None or self.image is None:
            target = getattr(_image_class(), name, None)
            if callable(target):
                return lambda *args, **kwargs: self
            raise AttributeError(f"{name} unavailable: {self.error}")

        attr = getattr(self.image, name)
        if not callable(attr):
            return attr

        def _forward(*args: Any, **kwargs: Any) -> Any:
            result = attr(*args, **kwargs)
            if result is self.image:
                return Outcome(image=self.image)
            return result

        return _forward


def _image_class() -> type:
    from fluent_image.image import Image

    return Image
