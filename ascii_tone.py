#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ascii_tone.py
=============

Brightness / contrast adjustment for 8-bit RGBA pixel buffers (numpy).

- Brightness is an additive offset, contrast uses the classic
  259*(c+255) / (255*(259-c)) factor around mid-grey 128
- Brightness always runs before contrast; alpha is never touched
- Values are stored rounded back into uint8, like a clamped canvas buffer

依赖：numpy
"""

from __future__ import annotations
import logging

import numpy as np

logger = logging.getLogger(__name__)

TONE_MIN = -50
TONE_MAX = 50


def clamp(value: float) -> float:
    """Clamp a channel value into [0, 255]."""
    return max(0, min(255, value))


def _clamp_tone(value: int) -> int:
    return int(max(TONE_MIN, min(TONE_MAX, value)))


def contrast_factor(contrast: int) -> float:
    """Contrast multiplier; contrast is clamped to [-50, 50] first."""
    contrast = _clamp_tone(contrast)
    return (259 * (contrast + 255)) / (255 * (259 - contrast))


def apply_brightness_contrast(buffer: np.ndarray, width: int, height: int,
                              brightness: int, contrast: int) -> np.ndarray:
    """
    Adjust brightness then contrast of an RGBA uint8 buffer in place.

    ``buffer`` may be flat (width*height*4) or shaped (height, width, 4);
    it must be C-contiguous so the adjustment lands in the caller's memory.
    Returns the same buffer.
    """
    if buffer.size != width * height * 4:
        raise ValueError(
            f"buffer holds {buffer.size} samples, expected {width * height * 4} for {width}x{height} RGBA"
        )
    if not buffer.flags["C_CONTIGUOUS"]:
        raise ValueError("buffer must be C-contiguous to be adjusted in place")

    brightness = _clamp_tone(brightness)
    contrast = _clamp_tone(contrast)
    if brightness == 0 and contrast == 0:
        return buffer

    pixels = buffer.reshape(-1, 4)
    rgb = pixels[:, :3].astype(np.float64)

    rgb = np.clip(rgb + brightness, 0, 255)
    factor = contrast_factor(contrast)
    rgb = np.clip(factor * (rgb - 128) + 128, 0, 255)

    # np.rint rounds half to even, same as a clamped 8-bit store
    pixels[:, :3] = np.rint(rgb).astype(np.uint8)
    logger.debug("tone adjusted %dx%d buffer (brightness=%d, contrast=%d, factor=%.4f)",
                 width, height, brightness, contrast, factor)
    return buffer
