"""Per-cell preparation shared by every merge strategy.

Every raw height step is ``scale`` levels: ``level = value * scale``. HD maps
keep their full 24-bit range, so adjacent HD values land on different levels.
Saved output depends on this rule byte for byte.
"""
from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from heightmap2brz.errors import DimensionMismatchError
from heightmap2brz.image_analysis.sampler import ColorGrid, HeightGrid
from heightmap2brz.options import GenOptions

CULLED = -1

_CROSS = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))
_SQUARE = np.ones((3, 3), dtype=np.uint8)


def quantize_levels(heights: HeightGrid, scale: int) -> np.ndarray:
    return heights.values.astype(np.int64) * scale


def neighbour_floor(levels: np.ndarray) -> np.ndarray:
    """Lowest of each cell's own level and its four neighbours' levels."""
    if levels.size == 0:
        return levels.copy()
    # float64 holds every 24-bit level times scale exactly
    eroded = cv2.erode(levels.astype(np.float64), _CROSS, borderType=cv2.BORDER_REPLICATE)
    return eroded.astype(np.int64)


def cull_mask(levels: np.ndarray, colors: ColorGrid, options: GenOptions) -> np.ndarray:
    """Cells removed by ``cull``.

    Fully transparent cells always go; outside image mode so do bottom-layer
    cells whose 3x3 neighbourhood is entirely bottom layer as well.
    """
    removed = colors.transparent().copy()
    if not options.img and levels.size:
        bottom = int(levels.min())
        highest_nearby = cv2.dilate(levels.astype(np.float64), _SQUARE, borderType=cv2.BORDER_REPLICATE)
        removed |= highest_nearby.astype(np.int64) == bottom
    return removed


@dataclass(frozen=True)
class CellField:
    levels: np.ndarray
    floor: np.ndarray
    keys: np.ndarray
    rgba: np.ndarray

    @property
    def width(self) -> int:
        return int(self.levels.shape[1])

    @property
    def height(self) -> int:
        return int(self.levels.shape[0])

    def color_at(self, x: int, y: int):
        r, g, b, a = (int(c) for c in self.rgba[y, x])
        return r, g, b, a


def build_cell_field(heights: HeightGrid, colors: ColorGrid, options: GenOptions) -> CellField:
    """Combine elevation and color into one merge key per cell.

    The key is ``level << 32 | packed_rgba``; culled cells get ``CULLED``.
    Sorting keys therefore orders cells by level, then by color.
    """
    if heights.size != colors.size:
        raise DimensionMismatchError(
            f"Height grid {heights.width}x{heights.height} does not match "
            f"color grid {colors.width}x{colors.height}"
        )
    levels = quantize_levels(heights, options.scale)
    keys = (levels << 32) | colors.keys().astype(np.int64)
    if options.cull:
        keys = np.where(cull_mask(levels, colors, options), CULLED, keys)
    return CellField(levels=levels, floor=neighbour_floor(levels), keys=keys, rgba=colors.rgba)
