#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ascii_app.py
============

Front end for the converter: application state plus a command line tool.

- ``AppState`` keeps the current image, the last result and the live settings
- Export to .txt / .html / .png
- Several inputs at once go to ``--output-dir`` with a tqdm progress bar
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import dataclass, field, replace
from typing import List, Optional

from tqdm import tqdm

from ascii_image import (
    CHARSETS,
    COLOR_MODES,
    PALETTES,
    PLACEHOLDER_ASCII,
    ConversionOptions,
    ConversionResult,
    ImageBuffer,
    ImageDecodeError,
    InvalidInputError,
    convert,
    create_sample_image,
    load_image,
    render_ansi,
    render_html,
)
from ascii_raster import rasterize, save_png

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)


# ------------------------ State ------------------------
@dataclass
class AppState:
    """Current image, last conversion and the live settings."""

    image: Optional[ImageBuffer] = None
    result: Optional[ConversionResult] = None
    settings: ConversionOptions = field(default_factory=ConversionOptions)

    @property
    def ascii_text(self) -> str:
        return self.result.text if self.result else ""

    def load(self, path: str) -> ImageBuffer:
        self.image = load_image(path)
        logger.info("loaded %s (%dx%d)", path, self.image.width, self.image.height)
        return self.image

    def load_sample(self) -> ImageBuffer:
        self.image = ImageBuffer.from_image(create_sample_image())
        return self.image

    def render(self) -> Optional[ConversionResult]:
        """Convert the current image with the current settings."""
        if self.image is None:
            logger.info("no image loaded, nothing to render")
            return None
        self.result = convert(self.image, replace(self.settings))
        return self.result

    def toggle_invert(self) -> bool:
        self.settings.invert = not self.settings.invert
        return self.settings.invert

    def reset_settings(self) -> None:
        self.settings = ConversionOptions()

    def clear(self) -> None:
        self.image = None
        self.result = None

    def preview(self) -> str:
        """Placeholder art until something is rendered, then the grid."""
        if self.result is None:
            return PLACEHOLDER_ASCII
        return render_ansi(self.result)

    # ---- exports ----
    def _require_result(self) -> ConversionResult:
        if self.result is None:
            raise InvalidInputError("no ASCII art to export; render an image first")
        return self.result

    def export_text(self, path: str) -> None:
        result = self._require_result()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(result.text)

    def export_html(self, path: str) -> None:
        result = self._require_result()
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(render_html(result))

    def export_png(self, path: str) -> None:
        result = self._require_result()
        save_png(rasterize(result, self.settings.color_mode), path)


# ------------------------ CLI ------------------------
def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert images to ASCII art (text, HTML or PNG)")
    source = parser.add_argument_group("input")
    source.add_argument("-i", "--input", nargs="+", help="Input image path(s)")
    source.add_argument("--sample", action="store_true", help="Use the built-in sample picture")

    out = parser.add_argument_group("output")
    out.add_argument("-o", "--output", help="Output file path (.txt or .html). Omit to print")
    out.add_argument("--png", help="Also save a PNG rendering to this path")
    out.add_argument("--output-dir", help="Directory for batch output (one .txt and .png per input)")

    visuals = parser.add_argument_group("visuals")
    visuals.add_argument("--width", type=int, default=80, help="Output width (characters, 40-120 recommended)")
    visuals.add_argument("--brightness", type=int, default=0, help="Brightness offset (-50..50)")
    visuals.add_argument("--contrast", type=int, default=0, help="Contrast (-50..50)")
    visuals.add_argument("--charset", default="medium", help=f"Charset. Presets: {', '.join(CHARSETS.keys())}")
    visuals.add_argument("--color-mode", choices=COLOR_MODES, default="monochrome", help="Colour mode")
    visuals.add_argument("--palette", default="original", help=f"Colour palette. Presets: {', '.join(PALETTES.keys())}")
    visuals.add_argument("--invert", action="store_true", help="Invert brightness before mapping")

    parser.add_argument("--list", action="store_true", help="List charsets and palettes and exit")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    return parser


def parse_args(argv: List[str]) -> argparse.Namespace:
    return _build_arg_parser().parse_args(argv)


def _options_from_args(args: argparse.Namespace) -> ConversionOptions:
    return ConversionOptions(
        output_width=args.width,
        brightness=args.brightness,
        contrast=args.contrast,
        charset=args.charset,
        color_mode=args.color_mode,
        invert=args.invert,
        palette=args.palette,
    )


def _print_registries() -> None:
    print("charsets:")
    for key, glyphs in CHARSETS.items():
        print(f"  {key:<8} {''.join(glyphs)!r}")
    print("palettes:")
    for key in PALETTES:
        print(f"  {key}")


def _run_batch(state: AppState, inputs: List[str], output_dir: str) -> int:
    os.makedirs(output_dir, exist_ok=True)
    failures = 0
    for path in tqdm(inputs, desc="converting", unit="img"):
        stem = os.path.splitext(os.path.basename(path))[0]
        try:
            state.load(path)
            state.render()
        except (ImageDecodeError, InvalidInputError, OSError) as exc:
            logger.error("%s: %s", path, exc)
            failures += 1
            continue
        state.export_text(os.path.join(output_dir, f"{stem}.txt"))
        state.export_png(os.path.join(output_dir, f"{stem}.png"))
    print(f"Converted {len(inputs) - failures}/{len(inputs)} images into {output_dir}")
    return 2 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(args.log_level)

    if args.list:
        _print_registries()
        return 0
    if not args.input and not args.sample:
        print("Nothing to convert: pass -i/--input or --sample", file=sys.stderr)
        return 2

    state = AppState(settings=_options_from_args(args))

    if args.input and len(args.input) > 1:
        if not args.output_dir:
            print("Several inputs need --output-dir", file=sys.stderr)
            return 2
        return _run_batch(state, args.input, args.output_dir)

    try:
        if args.sample:
            state.load_sample()
        else:
            state.load(args.input[0])
        state.render()
    except (ImageDecodeError, InvalidInputError, OSError) as exc:
        logger.debug("conversion failed", exc_info=True)
        print(f"Conversion failed: {exc}", file=sys.stderr)
        return 2

    if args.output:
        if args.output.lower().endswith((".html", ".htm")):
            state.export_html(args.output)
        else:
            state.export_text(args.output)
        print(f"Saved: {args.output}")
    else:
        print(state.preview(), end="")

    if args.png:
        state.export_png(args.png)
        print(f"Saved: {args.png}")
    if args.output_dir:
        stem = "sample" if args.sample else os.path.splitext(os.path.basename(args.input[0]))[0]
        state.export_text(os.path.join(args.output_dir, f"{stem}.txt"))
        state.export_png(os.path.join(args.output_dir, f"{stem}.png"))
        print(f"Saved: {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
