#!/usr/bin/env python3
"""Trim a uniform-color or transparent border from an image (and erase a corner watermark)."""
import argparse
import logging
import sys
from pathlib import Path

from ..exceptions import InvalidInputError
from ..pipeline.trim_pipeline import DEFAULT_TOLERANCE, REMOVE_WATERMARK, trim_directory, trim_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="border-trim",
        description="Crop a uniform-color or transparent border from an image, "
                    "or from every image in a directory.")
    parser.add_argument("input", help="Input image path or directory of images")
    parser.add_argument("-o", "--output",
                        help="Output PNG path, or output directory when INPUT is a directory "
                             "(default: <input stem>--trim.png next to the input)")
    parser.add_argument("-t", "--tolerance", type=float, default=DEFAULT_TOLERANCE,
                        help=f"Color tolerance, 0-100 is typical (default: {DEFAULT_TOLERANCE:g})")
    parser.add_argument("-r", "--recursive", action="store_true",
                        help="With a directory INPUT, also walk its subdirectories")
    parser.add_argument("--keep-watermark", action="store_true", default=not REMOVE_WATERMARK,
                        help="Do not look for a bottom-right watermark")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def describe(result) -> str:
    orig = "{}x{}".format(*result.source_size)
    trimmed = f"{result.image.width}x{result.image.height}"
    note = "  (watermark removed)" if result.watermark_removed else ""
    return f"{orig} -> {trimmed}  saved to {result.image.path}{note}"


def trim_one(src: Path, args) -> int:
    result = trim_file(src, args.output, tolerance=args.tolerance,
                       remove_watermark=not args.keep_watermark)
    if result.image is None:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1
    print(describe(result))
    return 0


def trim_many(folder: Path, args) -> int:
    """Every image must trim for a zero exit status."""
    trimmed = failed = 0
    for src, result in trim_directory(folder, args.output, tolerance=args.tolerance,
                                      remove_watermark=not args.keep_watermark,
                                      recursive=args.recursive):
        if result.image is None:
            print(f"Error: {src.name}: {result.message}", file=sys.stderr)
            failed += 1
        else:
            print(f"{src.name}: {describe(result)}")
            trimmed += 1

    if trimmed + failed == 0:
        print(f"Error: no readable images in {folder}", file=sys.stderr)
        return 1
    print(f"Trimmed {trimmed} of {trimmed + failed} images")
    return 1 if failed else 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    src = Path(args.input)
    if not src.exists():
        print(f"Error: {src} not found", file=sys.stderr)
        return 1

    try:
        if src.is_dir():
            return trim_many(src, args)
        if not src.is_file():
            print(f"Error: {src} is not a regular file", file=sys.stderr)
            return 1
        return trim_one(src, args)
    except (FileNotFoundError, InvalidInputError, TimeoutError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
