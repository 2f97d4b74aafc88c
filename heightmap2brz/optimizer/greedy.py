"""Greedy meshing: per level, cover each mask with maximal rectangles.

Every brick is a one-level slab at its own height; bottoms are never
extended towards shorter neighbours, which leaves steep terrain with visible
steps. That is the accepted cost of the lower brick count.

Tie-break: keys ascend (level, then packed color), cells are scanned
row-major, and each rectangle grows right as far as possible before
growing down while the full width stays inside the mask.
"""
from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np

from heightmap2brz.options import GenOptions

from .geometry import build_brick
from .levels import CULLED, CellField
from .models import Brick
from .progress import StageProgress

logger = logging.getLogger(__name__)

Rect = Tuple[int, int, int, int]


def merge_rectangles(mask: np.ndarray) -> List[Rect]:
    """Cover ``mask`` with disjoint ``(x, y, width, depth)`` rectangles."""
    remaining = np.array(mask, dtype=bool)
    rows, cols = remaining.shape
    rects: List[Rect] = []
    for y, x in zip(*np.nonzero(remaining)):
        if not remaining[y, x]:
            continue
        run = remaining[y, x:]
        width = int(run.argmin()) if not run.all() else int(run.size)
        depth = 1
        while y + depth < rows and remaining[y + depth, x : x + width].all():
            depth += 1
        remaining[y : y + depth, x : x + width] = False
        rects.append((int(x), int(y), width, depth))
    return rects


def greedy_bricks(field: CellField, options: GenOptions, progress: StageProgress) -> List[Brick]:
    flat = field.keys.ravel()
    order = np.argsort(flat, kind="stable")
    sorted_keys = flat[order]
    distinct, starts = np.unique(sorted_keys, return_index=True)
    bounds = list(starts) + [sorted_keys.size]
    width = field.width
    bricks: List[Brick] = []

    for index, key in enumerate(distinct):
        progress.checkpoint()
        if key == CULLED:
            continue
        cells = order[bounds[index] : bounds[index + 1]]
        ys, xs = np.divmod(cells, width)
        x0, y0 = int(xs.min()), int(ys.min())
        mask = np.zeros((int(ys.max()) - y0 + 1, int(xs.max()) - x0 + 1), dtype=bool)
        mask[ys - y0, xs - x0] = True
        level = int(key >> 32)
        color = field.color_at(int(xs[0]), int(ys[0]))
        for rx, ry, rw, rd in merge_rectangles(mask):
            bricks.append(
                build_brick(
                    options,
                    x0 + rx,
                    y0 + ry,
                    rw,
                    rd,
                    elevation=level,
                    bottom_level=level,
                    color=color,
                )
            )
        progress.report((index + 1) / len(distinct))
    logger.debug("Greedy merge produced %d bricks over %d level/color masks", len(bricks), len(distinct))
    return bricks
