"""Top-down preview of a generated brick set."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple

import cv2
import numpy as np

from heightmap2brz.errors import SaveWriteError
from heightmap2brz.optimizer.models import Brick


@dataclass
class PreviewConfig:
    pixels_per_cell: int = 4
    outline_color: Tuple[int, int, int] = (40, 40, 40)
    bg_color: Tuple[int, int, int] = (240, 240, 240)
    outlines: bool = True


def rasterize_bricks(bricks: Iterable[Brick], width: int, height: int) -> Tuple[np.ndarray, np.ndarray]:
    """Project bricks onto the cell grid.

    Returns the highest top level per cell (``-1`` where nothing covers it)
    and how many bricks cover each cell at its top level.
    """
    elevation = np.full((height, width), -1, dtype=np.int64)
    coverage = np.zeros((height, width), dtype=np.int64)
    for brick in bricks:
        x0, y0 = max(brick.x, 0), max(brick.y, 0)
        x1, y1 = min(brick.x + brick.width, width), min(brick.y + brick.depth, height)
        if x1 <= x0 or y1 <= y0:
            continue
        region = elevation[y0:y1, x0:x1]
        hits = coverage[y0:y1, x0:x1]
        higher = brick.elevation > region
        same = brick.elevation == region
        hits[higher] = 1
        hits[same] += 1
        region[higher] = brick.elevation
    return elevation, coverage


def render_preview(
    bricks: Iterable[Brick],
    width: int,
    height: int,
    output_path: Path,
    config: PreviewConfig | None = None,
) -> Path:
    config = config or PreviewConfig()
    bricks = list(bricks)
    scale = config.pixels_per_cell
    canvas = np.full((height * scale, width * scale, 3), config.bg_color, dtype=np.uint8)

    for brick in sorted(bricks, key=lambda b: b.elevation):
        r, g, b, _ = brick.color
        top_left = (brick.x * scale, brick.y * scale)
        bottom_right = ((brick.x + brick.width) * scale - 1, (brick.y + brick.depth) * scale - 1)
        cv2.rectangle(canvas, top_left, bottom_right, (b, g, r), thickness=-1)
        if config.outlines and scale > 2:
            cv2.rectangle(canvas, top_left, bottom_right, config.outline_color, thickness=1)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), canvas):
        raise SaveWriteError(output_path, "preview encoder failed")
    return output_path
