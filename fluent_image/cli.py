"""Command line entry point: load one image, apply a transform chain, save it."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace

from .errors import ImageError
from .logger import CATEGORIES_ENV, LEVEL_ENV, get_logger
from .settings import ImageConfig, parse_memory_limit


def _size(value: str) -> tuple[int, int]:
    try:
        w, h = value.lower().split("x", 1)
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from None


def _ints(count: int):
    def parse(value: str) -> tuple[int, ...]:
        parts = [p for p in value.split(",") if p.strip()]
        if len(parts) != count:
            raise argparse.ArgumentTypeError(f"expected {count} comma separated integers, got {value!r}")
        try:
            return tuple(int(p) for p in parts)
        except ValueError:
            raise argparse.ArgumentTypeError(f"expected integers, got {value!r}") from None

    return parse


def _merge_spec(value: str) -> tuple[str, str, str]:
    # PATH or PATH:X:Y; rsplit keeps Windows drive letters inside the path
    parts = value.rsplit(":", 2)
    if len(parts) == 3 and parts[0] and not os.path.exists(value):
        return parts[0], parts[1], parts[2]
    return value, "center", "center"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fluent-image", description="Apply a transform chain to an image.")
    parser.add_argument("source", help="Image to read")
    parser.add_argument("destination", help="File to write")
    parser.add_argument("--settings", help="JSON settings file")
    parser.add_argument("--resize", type=_size, metavar="WxH")
    parser.add_argument("--crop-resize", action="store_true", help="Cover the resize target and crop the overflow")
    parser.add_argument("--stretch", action="store_true", help="Ignore the aspect ratio when resizing")
    parser.add_argument("--crop", type=_ints(4), metavar="X1,Y1,X2,Y2")
    parser.add_argument("--rotate", type=float, metavar="DEG", help="Counter-clockwise rotation")
    parser.add_argument("--flip", choices=("h", "v"), action="append", default=[])
    parser.add_argument("--merge", type=_merge_spec, metavar="PATH[:X:Y]")
    parser.add_argument("--opacity", type=float, metavar="PERCENT")
    parser.add_argument("--text", help="Text drawn at --text-pos")
    parser.add_argument("--text-pos", type=_ints(2), default=None, metavar="X,Y")
    parser.add_argument("--text-size", type=int)
    parser.add_argument("--font")
    parser.add_argument("--fill", type=_ints(3), metavar="R,G,B")
    parser.add_argument("--format", help="Output format (jpg, png, webp, gif)")
    parser.add_argument("--quality", type=int, help="JPEG/WebP quality 0-100")
    parser.add_argument("--compression", type=int, help="PNG compression 0-9")
    parser.add_argument("--memory-limit", help="Decode ceiling, e.g. 128M")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    return parser


def _config(args: argparse.Namespace) -> ImageConfig:
    config = ImageConfig.from_file(args.settings) if args.settings else ImageConfig()
    config = ImageConfig.from_env(config)
    overrides = {}
    limit = parse_memory_limit(args.memory_limit)
    if limit is not None:
        overrides["memory_limit"] = limit
    if args.fill:
        overrides["fill_color"] = args.fill
    if args.quality is not None:
        overrides["jpeg_quality"] = args.quality
    if args.compression is not None:
        overrides["png_compression"] = args.compression
    return replace(config, **overrides) if overrides else config


def run(args: argparse.Namespace) -> int:
    from .image import Image

    logger = get_logger("cli")
    try:
        image = Image(args.source, _config(args))
    except (ImageError, ValueError) as e:
        logger.error("cannot load %s: %s", args.source, e)
        return 1

    try:
        result = _apply(image, args)
    except (ImageError, ValueError) as e:
        logger.error("cannot transform %s: %s", args.source, e)
        return 1
    result = result.save(args.destination, args.format)

    if not result.ok:
        logger.error("%s", result.error)
        return 1
    return 0


def _apply(image, args: argparse.Namespace):
    if args.crop:
        image.crop(*args.crop)
    if args.resize:
        image.resize(*args.resize, crop=args.crop_resize, proportional=not args.stretch)
    if args.rotate is not None:
        image.rotate(args.rotate)
    for axis in args.flip:
        if axis == "h":
            image.flip_horizontal()
        else:
            image.flip_vertical()

    result = image
    if args.merge:
        path, pos_x, pos_y = args.merge
        result = result.merge(path, pos_x, pos_y)
    if args.opacity is not None:
        result = result.opacity(args.opacity)
    if args.text:
        options = {}
        if args.text_pos:
            options["x"], options["y"] = args.text_pos
        if args.text_size:
            options["size"] = args.text_size
        if args.font:
            options["font"] = args.font
        result = result.add_text(args.text, **options)
    return result


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    # loggers are configured lazily from the environment
    if args.log_level:
        os.environ[LEVEL_ENV] = args.log_level
    if args.log_cats:
        os.environ[CATEGORIES_ENV] = args.log_cats
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
