"""Strategy dispatch and the unoptimized one-brick-per-cell strategy."""
from __future__ import annotations

import logging
import time
from typing import List, Optional

from heightmap2brz.image_analysis.sampler import ColorGrid, HeightGrid
from heightmap2brz.options import GenOptions, Strategy

from .geometry import build_brick
from .greedy import greedy_bricks
from .levels import CULLED, CellField, build_cell_field
from .models import Brick, BrickSet
from .progress import ProgressTracker, StageProgress
from .quadtree import quadtree_bricks

logger = logging.getLogger(__name__)


def cell_bricks(field: CellField, options: GenOptions, progress: StageProgress) -> List[Brick]:
    bricks: List[Brick] = []
    for y in range(field.height):
        progress.checkpoint()
        for x in range(field.width):
            if field.keys[y, x] == CULLED:
                continue
            bricks.append(
                build_brick(
                    options,
                    x,
                    y,
                    1,
                    1,
                    elevation=int(field.levels[y, x]),
                    bottom_level=int(field.floor[y, x]),
                    color=field.color_at(x, y),
                )
            )
        progress.report((y + 1) / field.height)
    return bricks


STRATEGIES = {
    Strategy.NONE: cell_bricks,
    Strategy.QUADTREE: quadtree_bricks,
    Strategy.GREEDY: greedy_bricks,
}


def generate_bricks(
    heights: HeightGrid,
    colors: ColorGrid,
    options: GenOptions,
    progress: Optional[StageProgress] = None,
) -> BrickSet:
    """Run the strategy selected by ``options`` over the sampled grids.

    Raises :class:`~heightmap2brz.errors.GenerationCancelled` as soon as a
    polling point observes cancellation; nothing partial is returned.
    """
    if progress is None:
        progress = ProgressTracker().stage("Generating")
    field = build_cell_field(heights, colors, options)
    strategy = options.strategy
    logger.info(
        "Generating %dx%d heightmap with %s optimization",
        field.width,
        field.height,
        strategy.value,
    )
    start = time.monotonic()
    bricks = STRATEGIES[strategy](field, options, progress)
    progress.checkpoint()
    progress.report(1.0)
    logger.info("Generated %d bricks in %.2fs", len(bricks), time.monotonic() - start)
    return BrickSet(
        bricks=tuple(bricks),
        width=field.width,
        height=field.height,
        strategy=strategy.value,
    )
