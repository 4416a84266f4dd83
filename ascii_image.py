#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ascii_image.py
==============

图片转 ASCII 字符网格的核心模块（基于 Pillow + numpy）

- Six built-in character sets (dense → light) and eight colour palettes
- Scale to a target width in characters, keeping the aspect ratio
- Brightness / contrast via ``ascii_tone``, BT.601 luminance, optional invert
- Output: plain text grid plus an optional per-cell colour grid
- Extra renderers: HTML (<pre> + <span style="color: rgb(...)">) and ANSI truecolor

依赖：Pillow, numpy
"""

from __future__ import annotations
import html
import io
import logging
import math
import sys
from dataclasses import dataclass, asdict, field
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

try:
    from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError
except Exception as exc:  # pragma: no cover - 运行环境依赖
    print("This module requires Pillow. Install it with: pip install pillow", file=sys.stderr)
    raise

from ascii_tone import apply_brightness_contrast, clamp

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


# ------------------------ Errors ------------------------
class InvalidInputError(ValueError):
    """Bad conversion input: width, image size or unknown registry key."""


class ImageDecodeError(IOError):
    """Source bytes could not be decoded as an image."""


# ------------------------ Character Sets ------------------------
# index 0 is the densest glyph, the last one the lightest
CHARSETS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "dense": ("@", "#", "$", "%", "&", "*", "+", "-", ":", ".", " "),
    "medium": ("#", "$", "%", "*", "+", "-", ":", ".", " "),
    "light": ("▓", "▒", "░", ":", ".", " "),
    "blocks": ("█", "▄", "▌", "▐", "·", " "),
    "simple": ("@", "*", ".", " "),
    "retro": ("║", "═", "╔", "╗", "╚", "╝", " ", " "),
})


# ------------------------ Colour Palettes ------------------------
def _luma(r: float, g: float, b: float) -> float:
    """ITU-R BT.601 luminance in [0, 255]."""
    return r * 0.299 + g * 0.587 + b * 0.114


def _channel(value: float) -> int:
    return int(clamp(math.floor(value)))


def _original(r: int, g: int, b: int) -> RGB:
    return _channel(r), _channel(g), _channel(b)


def _matrix(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    return 0, _channel(lum), 0


def _amber(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    return _channel(lum), _channel(lum * 0.7), 0


def _cyan(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    return 0, _channel(lum * 0.8), _channel(lum)


def _fire(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    # green grows with the square of brightness: dark reds, yellow-orange highlights
    return _channel(lum), _channel(lum * (lum / 255) * 0.5), 0


def _ice(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    return _channel(lum * 0.6), _channel(lum * 0.8), _channel(lum)


def _purple(r: int, g: int, b: int) -> RGB:
    lum = _luma(r, g, b)
    return _channel(lum * 0.8), _channel(lum * 0.3), _channel(lum)


def _grayscale(r: int, g: int, b: int) -> RGB:
    gray = _channel(_luma(r, g, b))
    return gray, gray, gray


PALETTES: Mapping[str, Callable[[int, int, int], RGB]] = MappingProxyType({
    "original": _original,
    "matrix": _matrix,
    "amber": _amber,
    "cyan": _cyan,
    "fire": _fire,
    "ice": _ice,
    "purple": _purple,
    "grayscale": _grayscale,
})

COLOR_MODES = ("monochrome", "color")


def list_charsets() -> List[str]:
    return list(CHARSETS.keys())


def list_palettes() -> List[str]:
    return list(PALETTES.keys())


def get_palette(name: str) -> Callable[[int, int, int], RGB]:
    """Look up a palette by key; unknown keys fall back to ``original``."""
    palette = PALETTES.get(name)
    if palette is None:
        logger.warning("unknown palette %r, using 'original'", name)
        return PALETTES["original"]
    return palette


# ------------------------ Data Model ------------------------
@dataclass
class ImageBuffer:
    """Row-major RGBA uint8 samples, shape (height, width, 4)."""

    width: int
    height: int
    data: np.ndarray

    @classmethod
    def from_image(cls, img: Image.Image) -> "ImageBuffer":
        rgba = img.convert("RGBA")
        data = np.array(rgba, dtype=np.uint8)
        return cls(width=rgba.width, height=rgba.height, data=data)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.data, dtype=np.uint8))


@dataclass
class ConversionOptions:
    """Options for one image-to-glyph conversion."""

    output_width: int = 80
    brightness: int = 0
    contrast: int = 0
    charset: str = "medium"
    color_mode: str = "monochrome"  # monochrome | color
    invert: bool = False
    palette: str = "original"

    def to_dict(self) -> dict:
        """Return options as dict."""
        return asdict(self)


@dataclass(frozen=True)
class GlyphCell:
    char: str
    color: Optional[RGB] = None


@dataclass
class ConversionResult:
    """Glyph grid produced by :func:`convert`."""

    text: str
    width: int
    height: int
    color_grid: Optional[List[List[GlyphCell]]] = None
    processed: Optional[ImageBuffer] = field(default=None, repr=False)

    @property
    def rows(self) -> List[str]:
        """Text rows without their terminators."""
        return self.text.split("\n")[:-1] if self.text else []

    @property
    def is_color(self) -> bool:
        return self.color_grid is not None


# ------------------------ Decode ------------------------
def decode_image(data: bytes) -> ImageBuffer:
    """Decode encoded image bytes (PNG, JPEG, GIF, ...) into an RGBA buffer."""
    try:
        img = Image.open(io.BytesIO(data))
        img.seek(0)  # first frame of animated images
        img.load()
    except (UnidentifiedImageError, OSError, EOFError, SyntaxError) as exc:
        raise ImageDecodeError(f"Cannot decode image data: {exc}") from exc
    return ImageBuffer.from_image(img)


def load_image(path: str) -> ImageBuffer:
    """Read and decode an image file."""
    with open(path, "rb") as f:
        data = f.read()
    try:
        return decode_image(data)
    except ImageDecodeError as exc:
        raise ImageDecodeError(f"{path}: {exc}") from exc


# ------------------------ Core Converter ------------------------
class AsciiImageConverter:
    """Convert images to glyph grids according to :class:`ConversionOptions`."""

    def __init__(self, options: ConversionOptions):
        self.opts = options

    def _validate(self, width: int, height: int) -> Sequence[str]:
        opts = self.opts
        if isinstance(opts.output_width, bool) or not isinstance(opts.output_width, int):
            raise InvalidInputError(f"output_width must be an integer, got {opts.output_width!r}")
        if opts.output_width < 1:
            raise InvalidInputError(f"output_width must be >= 1, got {opts.output_width}")
        if width < 1 or height < 1:
            raise InvalidInputError(f"image must have a positive size, got {width}x{height}")
        if opts.charset not in CHARSETS:
            raise InvalidInputError(
                f"unknown charset {opts.charset!r}; choose from: {', '.join(CHARSETS)}"
            )
        if opts.palette not in PALETTES:
            raise InvalidInputError(
                f"unknown palette {opts.palette!r}; choose from: {', '.join(PALETTES)}"
            )
        if opts.color_mode not in COLOR_MODES:
            raise InvalidInputError(f"color_mode must be one of: {', '.join(COLOR_MODES)}")
        return CHARSETS[opts.charset]

    def target_size(self, width: int, height: int) -> Tuple[int, int]:
        """Grid size in characters: (output_width, floor(H * OW / W)) with height >= 1."""
        out_w = self.opts.output_width
        return out_w, max(1, (height * out_w) // width)

    def _resample(self, img: Image.Image, size: Tuple[int, int]) -> np.ndarray:
        resized = img.convert("RGBA").resize(size, Image.Resampling.BILINEAR)
        return np.array(resized, dtype=np.uint8)

    def _glyph_indices(self, pixels: np.ndarray, length: int) -> np.ndarray:
        rgb = pixels[..., :3].astype(np.float64)
        lum = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
        norm = lum / 255.0
        if self.opts.invert:
            norm = 1.0 - norm
        idx = np.floor(norm * (length - 1)).astype(np.int64)
        return np.clip(idx, 0, length - 1)

    def convert(self, image: Union[Image.Image, ImageBuffer]) -> ConversionResult:
        """Convert an image into text rows and an optional colour grid."""
        opts = self.opts
        img = image.to_image() if isinstance(image, ImageBuffer) else image
        charset = self._validate(img.width, img.height)

        out_w, out_h = self.target_size(img.width, img.height)
        pixels = self._resample(img, (out_w, out_h))

        if opts.brightness != 0 or opts.contrast != 0:
            apply_brightness_contrast(pixels, out_w, out_h, opts.brightness, opts.contrast)

        indices = self._glyph_indices(pixels, len(charset))
        color_mode = opts.color_mode == "color"
        palette = PALETTES[opts.palette]

        lines: List[str] = []
        color_grid: List[List[GlyphCell]] = []
        for y in range(out_h):
            row_chars = [charset[i] for i in indices[y]]
            lines.append("".join(row_chars))
            if color_mode:
                row_cells: List[GlyphCell] = []
                for x, ch in enumerate(row_chars):
                    r, g, b = (int(v) for v in pixels[y, x, :3])
                    row_cells.append(GlyphCell(ch, palette(r, g, b)))
                color_grid.append(row_cells)

        pixels.flags.writeable = False
        logger.debug("converted %dx%d image to %dx%d grid (charset=%s, color=%s)",
                     img.width, img.height, out_w, out_h, opts.charset, opts.color_mode)
        return ConversionResult(
            text="".join(line + "\n" for line in lines),
            width=out_w,
            height=out_h,
            color_grid=color_grid if color_mode else None,
            processed=ImageBuffer(out_w, out_h, pixels),
        )


def convert(image: Union[Image.Image, ImageBuffer], options: ConversionOptions) -> ConversionResult:
    """Convert ``image`` with ``options``; see :class:`AsciiImageConverter`."""
    return AsciiImageConverter(options).convert(image)


# ------------------------ Renderers ------------------------
ANSI_RESET = "\x1b[0m"

PLACEHOLDER_ASCII = (
    "╔══════════════════════════════════════════════╗\n"
    "║                                              ║\n"
    "║      Upload an image to generate ASCII       ║\n"
    "║                                              ║\n"
    "╚══════════════════════════════════════════════╝"
)


def _ansi_truecolor_seq(r: int, g: int, b: int) -> str:
    """Build ANSI truecolor (24-bit) foreground sequence."""
    return f"\x1b[38;2;{r};{g};{b}m"


def render_ansi(result: ConversionResult) -> str:
    """Render a result for the terminal; colour grids use truecolor escapes."""
    if result.color_grid is None:
        return result.text
    lines: List[str] = []
    for row in result.color_grid:
        row_parts: List[str] = []
        last_seq = ""
        for cell in row:
            seq = _ansi_truecolor_seq(*cell.color) if cell.color else ""
            if seq != last_seq:
                row_parts.append(seq)
                last_seq = seq
            row_parts.append(cell.char)
        if last_seq:
            row_parts.append(ANSI_RESET)
        lines.append("".join(row_parts))
    return "".join(line + "\n" for line in lines)


def render_html(result: ConversionResult, bg: str = "black") -> str:
    """Render a result as a standalone HTML page."""
    bg_css = "black" if bg.lower() == "black" else "white"
    fg_css = "#00ff00" if bg_css == "black" else "black"
    lines: List[str] = []
    lines.append("<!DOCTYPE html>")
    lines.append("<html><head><meta charset='utf-8'><title>ASCII Art</title>")
    lines.append(
        "<style>body{margin:0;background:%s;color:%s;} pre{line-height:1; font: 10px/10px monospace; padding:8px;}</style>"
        % (bg_css, fg_css)
    )
    lines.append("</head><body><pre>")
    if result.color_grid is None:
        lines.extend(html.escape(row) for row in result.rows)
    else:
        for row in result.color_grid:
            row_parts: List[str] = []
            for cell in row:
                r, g, b = cell.color or (255, 255, 255)
                row_parts.append(f"<span style=\"color: rgb({r},{g},{b})\">{html.escape(cell.char)}</span>")
            lines.append("".join(row_parts))
    lines.append("</pre></body></html>")
    return "\n".join(lines)


def create_sample_image() -> Image.Image:
    """Draw a small retro desktop picture for demos (200x100)."""
    img = Image.new("RGB", (200, 100), "#000080")
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()

    # window with a title bar
    draw.rectangle((20, 20, 179, 129), fill="#C0C0C0")
    draw.rectangle((22, 22, 177, 41), fill="#000080")
    draw.text((30, 26), "ASCII-VISION 95", fill="#ffffff", font=font)

    # framed label inside the window
    draw.rectangle((40, 52, 150, 88), outline="#000000", width=2)
    draw.text((50, 64), "ASCII READY", fill="#000000", font=font)
    return img
