#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ascii_raster.py
===============

Re-rasterize a glyph grid into a PNG-ready Pillow image.

- Bitmap size derived from a 10px monospace cell (0.6 width ratio) plus padding,
  then kept within 600..1200 px on the long axis
- Font size fitted to the padded interior, between 6 and 12 px
- Monochrome: green terminal glyphs with a soft glow; colour: per-cell RGB

依赖：Pillow
"""

from __future__ import annotations
import io
import logging
import math
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from ascii_image import ConversionResult, GlyphCell

logger = logging.getLogger(__name__)

BASE_FONT_SIZE = 10
CHAR_WIDTH_RATIO = 0.6
PADDING = 100
MIN_DIMENSION = 600
MAX_DIMENSION = 1200
MIN_FONT_SIZE = 6
MAX_FONT_SIZE = 12

BACKGROUND = (0, 0, 0)
TERMINAL_GREEN = (0, 255, 0)
GLOW_RADIUS = 2

FONT_CANDIDATES = (
    "DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "cour.ttf",
    "consola.ttf",
    "/System/Library/Fonts/Menlo.ttc",
)


@dataclass(frozen=True)
class RasterLayout:
    """Geometry of an exported bitmap."""

    width: int
    height: int
    font_size: int
    char_width: float
    line_height: int
    origin_x: float
    origin_y: float


def _final_size(natural_w: float, natural_h: float) -> Tuple[int, int]:
    aspect = natural_w / natural_h
    if natural_w > MAX_DIMENSION or natural_h > MAX_DIMENSION:
        # scale down so the long side hits the upper bound
        if natural_w > natural_h:
            width = MAX_DIMENSION
            height = round(width / aspect)
        else:
            height = MAX_DIMENSION
            width = round(height * aspect)
    elif natural_w < MIN_DIMENSION and natural_h < MIN_DIMENSION:
        # scale up; the short side is padded to the lower bound too
        if natural_w > natural_h:
            width = MIN_DIMENSION
            height = max(MIN_DIMENSION, round(width / aspect))
        else:
            height = MIN_DIMENSION
            width = max(MIN_DIMENSION, round(height * aspect))
    else:
        width = round(natural_w)
        height = round(natural_h)
    return int(width), int(height)


def compute_layout(max_line_length: int, line_count: int) -> RasterLayout:
    """Compute bitmap size, font size and text origin for a grid shape."""
    if max_line_length <= 0 or line_count <= 0:
        return RasterLayout(MIN_DIMENSION, MIN_DIMENSION, MIN_FONT_SIZE,
                            MIN_FONT_SIZE * CHAR_WIDTH_RATIO, MIN_FONT_SIZE,
                            MIN_DIMENSION / 2, MIN_DIMENSION / 2)

    natural_w = max_line_length * BASE_FONT_SIZE * CHAR_WIDTH_RATIO + PADDING
    natural_h = line_count * BASE_FONT_SIZE + PADDING
    width, height = _final_size(natural_w, natural_h)

    by_width = math.floor((width - PADDING) / max_line_length / CHAR_WIDTH_RATIO)
    by_height = math.floor((height - PADDING) / line_count)
    font_size = max(MIN_FONT_SIZE, min(by_width, by_height, MAX_FONT_SIZE))

    char_width = font_size * CHAR_WIDTH_RATIO
    line_height = font_size
    origin_x = (width - max_line_length * char_width) / 2
    origin_y = (height - line_count * line_height) / 2
    return RasterLayout(width, height, font_size, char_width, line_height, origin_x, origin_y)


def load_font(font_size: int, font_path: Optional[str] = None) -> ImageFont.ImageFont:
    """Load a monospace TrueType font, falling back to Pillow's default font."""
    candidates = ([font_path] if font_path else []) + list(FONT_CANDIDATES)
    for path in candidates:
        try:
            return ImageFont.truetype(path, font_size)
        except OSError:
            continue
    logger.warning("no monospace TrueType font found, using Pillow default font")
    return ImageFont.load_default(size=font_size)


def _cells_from(source: Union[ConversionResult, str], color_mode: str) -> Tuple[List[List[GlyphCell]], bool]:
    if isinstance(source, str):
        rows: Sequence[str] = source.splitlines()
        grid = None
    else:
        rows = source.rows
        grid = source.color_grid

    use_color = color_mode == "color"
    if use_color and grid is None:
        logger.warning("colour export requested but the grid has no colours; rendering monochrome")
        use_color = False
    if use_color:
        return [list(row) for row in grid], True
    return [[GlyphCell(ch) for ch in row] for row in rows], False


def _draw_cells(draw: ImageDraw.ImageDraw, cells: List[List[GlyphCell]], layout: RasterLayout,
                font, fill: Optional[Tuple[int, int, int]] = None) -> None:
    for y, row in enumerate(cells):
        top = layout.origin_y + y * layout.line_height
        for x, cell in enumerate(row):
            if cell.char == " ":
                continue
            left = layout.origin_x + x * layout.char_width
            draw.text((left, top), cell.char, font=font, fill=fill or cell.color or TERMINAL_GREEN)


def rasterize(source: Union[ConversionResult, str], color_mode: str = "monochrome",
              font_path: Optional[str] = None) -> Image.Image:
    """
    Draw a glyph grid (conversion result or plain text) onto a black bitmap.

    Empty grids produce a blank bitmap of the minimum size.
    """
    cells, use_color = _cells_from(source, color_mode)
    max_line_length = max((len(row) for row in cells), default=0)
    layout = compute_layout(max_line_length, len(cells))
    img = Image.new("RGB", (layout.width, layout.height), BACKGROUND)
    if max_line_length == 0:
        logger.debug("empty grid, returning blank %dx%d bitmap", layout.width, layout.height)
        return img

    font = load_font(layout.font_size, font_path)
    if use_color:
        _draw_cells(ImageDraw.Draw(img), cells, layout, font)
    else:
        # glow: blurred copy of the glyphs underneath the sharp ones
        glow = Image.new("RGB", img.size, BACKGROUND)
        _draw_cells(ImageDraw.Draw(glow), cells, layout, font, TERMINAL_GREEN)
        img = glow.filter(ImageFilter.GaussianBlur(GLOW_RADIUS))
        _draw_cells(ImageDraw.Draw(img), cells, layout, font, TERMINAL_GREEN)

    logger.debug("rasterized %dx%d grid to %dx%d bitmap (font %dpx, color=%s)",
                 max_line_length, len(cells), layout.width, layout.height, layout.font_size, use_color)
    return img


def encode_png(bitmap: Image.Image) -> bytes:
    """Encode a bitmap as PNG bytes."""
    buf = io.BytesIO()
    bitmap.save(buf, format="PNG")
    return buf.getvalue()


def save_png(bitmap: Image.Image, path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "wb") as f:
        f.write(encode_png(bitmap))
