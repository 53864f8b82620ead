"""EXIF orientation correction.

Exif Orientation (source: http://www.exif.org/Exif2-2.PDF)
1 = The 0th row is at the visual top of the image, and the 0th column is the visual left-hand side.
2 = The 0th row is at the visual top of the image, and the 0th column is the visual right-hand side.
3 = The 0th row is at the visual bottom of the image, and the 0th column is the visual right-hand side.
4 = The 0th row is at the visual bottom of the image, and the 0th column is the visual left-hand side.
5 = The 0th row is the visual left-hand side of the image, and the 0th column is the visual top.
6 = The 0th row is the visual right-hand side of the image, and the 0th column is the visual top.
7 = The 0th row is the visual right-hand side of the image, and the 0th column is the visual bottom.
8 = The 0th row is the visual left-hand side of the image, and the 0th column is the visual bottom.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from fluent_image.logger import get_logger

if TYPE_CHECKING:
    from fluent_image.image import Image

_logger = get_logger("orientation")

# formats whose decoders expose an EXIF orientation
ORIENTED_FORMATS = frozenset({"jpg", "webp"})


class Step(Enum):
    ROTATE_90 = "rotate-90"
    ROTATE_270 = "rotate-270"
    FLIP_HORIZONTAL = "flip-horizontal"
    FLIP_VERTICAL = "flip-vertical"


# rotations are counter-clockwise
STEPS: dict[int, tuple[Step, ...]] = {
    1: (),
    2: (Step.FLIP_HORIZONTAL,),
    3: (Step.FLIP_HORIZONTAL, Step.FLIP_VERTICAL),
    4: (Step.FLIP_VERTICAL,),
    5: (Step.ROTATE_90, Step.FLIP_HORIZONTAL),
    6: (Step.ROTATE_270,),
    7: (Step.ROTATE_90, Step.FLIP_HORIZONTAL, Step.FLIP_VERTICAL),
    8: (Step.ROTATE_90,),
}


def steps_for(code: int | None) -> tuple[Step, ...]:
    """Operations undoing orientation ``code``; unknown codes need none."""
    if code is None:
        return ()
    return STEPS.get(int(code), ())


def normalize(image: Image, code: int | None, source_format: str | None) -> Image:
    if source_format not in ORIENTED_FORMATS:
        return image
    steps = steps_for(code)
    if not steps:
        return image
    _logger.debug("orientation %s: applying %s", code, ", ".join(s.value for s in steps))
    for step in steps:
        if step is Step.ROTATE_90:
            image.rotate(90)
        elif step is Step.ROTATE_270:
            image.rotate(270)
        elif step is Step.FLIP_HORIZONTAL:
            image.flip_horizontal()
        else:
            image.flip_vertical()
    return image
