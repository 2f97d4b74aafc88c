"""Quadtree merging: recursive subdivision into uniform square regions.

Regions are power-of-two aligned squares of the smallest power-of-two root
covering the grid. A region becomes one brick only when every cell in it has
the same merge key (level and color, exact match); otherwise it splits into
four children visited top-left, top-right, bottom-left, bottom-right.

Each split keeps a slice of the key grid alive on the recursion stack, so
large noisy images cost noticeably more memory than smooth ones.
"""
from __future__ import annotations

import logging
from typing import List

from heightmap2brz.options import GenOptions

from .geometry import build_brick
from .levels import CULLED, CellField
from .models import Brick
from .progress import StageProgress

logger = logging.getLogger(__name__)


def root_size(width: int, height: int) -> int:
    size = 1
    while size < max(width, height):
        size *= 2
    return size


def quadtree_bricks(field: CellField, options: GenOptions, progress: StageProgress) -> List[Brick]:
    keys = field.keys
    width, height = field.width, field.height
    total = max(1, width * height)
    bricks: List[Brick] = []
    resolved = 0
    leaves = 0

    def visit(x: int, y: int, size: int) -> None:
        nonlocal resolved, leaves
        if x >= width or y >= height:
            return
        x1 = min(x + size, width)
        y1 = min(y + size, height)
        region = keys[y:y1, x:x1]
        key = region[0, 0]
        if x1 - x == size and y1 - y == size and (region == key).all():
            leaves += 1
            if key != CULLED:
                bricks.append(
                    build_brick(
                        options,
                        x,
                        y,
                        size,
                        size,
                        elevation=int(field.levels[y, x]),
                        bottom_level=int(field.floor[y:y1, x:x1].min()),
                        color=field.color_at(x, y),
                    )
                )
            resolved += size * size
            progress.report(resolved / total)
            return
        progress.checkpoint()
        half = size // 2
        for dy in (0, half):
            for dx in (0, half):
                visit(x + dx, y + dy, half)

    if width and height:
        visit(0, 0, root_size(width, height))
    logger.debug("Quadtree produced %d bricks from %d leaves", len(bricks), leaves)
    return bricks
