"""sRGB transfer curve helpers and packed color keys."""
from __future__ import annotations

from typing import Tuple

import numpy as np

RGBA = Tuple[int, int, int, int]

DEFAULT_COLOR: RGBA = (255, 255, 255, 255)


def srgb_to_linear(value: np.ndarray) -> np.ndarray:
    """Decode sRGB values in [0, 1] to linear light."""
    value = np.asarray(value, dtype=np.float64)
    return np.where(value <= 0.04045, value / 12.92, ((value + 0.055) / 1.055) ** 2.4)


def _build_linear_lut() -> np.ndarray:
    levels = np.arange(256, dtype=np.float64) / 255.0
    return np.floor(srgb_to_linear(levels) * 255.0 + 0.5).astype(np.uint8)


SRGB_TO_LINEAR_LUT = _build_linear_lut()


def linearize_rgba(rgba: np.ndarray) -> np.ndarray:
    """Gamma-decode the RGB channels of an ``H x W x 4`` uint8 array."""
    out = rgba.copy()
    out[..., :3] = SRGB_TO_LINEAR_LUT[rgba[..., :3]]
    return out


def pack_rgba(rgba: np.ndarray) -> np.ndarray:
    """Pack ``... x 4`` uint8 colors into uint32 keys (R in the high byte)."""
    rgba = rgba.astype(np.uint32)
    return (rgba[..., 0] << 24) | (rgba[..., 1] << 16) | (rgba[..., 2] << 8) | rgba[..., 3]


def unpack_rgba(key: int) -> RGBA:
    key = int(key)
    return ((key >> 24) & 0xFF, (key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF)
