"""Cell rectangles to game-space bricks, plus the cross-strategy policies."""
from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from heightmap2brz.image_analysis.color import RGBA
from heightmap2brz.options import GenOptions

from .models import Brick


def _span(low: int, high: int) -> Tuple[int, int]:
    return (low + high) // 2, (high - low) // 2


def _snap_edges(low: int, high: int, unit: int) -> Tuple[int, int]:
    step = 2 * unit
    low = (low + unit) // step * step
    high = (high + unit) // step * step
    if high <= low:
        high = low + step
    return low, high


def build_brick(
    options: GenOptions,
    x: int,
    y: int,
    width: int,
    depth: int,
    elevation: int,
    bottom_level: int,
    color: RGBA,
) -> Brick:
    """Brick over cells ``[x, x+width) x [y, y+depth)`` from ``bottom_level``
    up to the top of ``elevation``, with every policy already applied."""
    unit = options.unit_size
    level = options.level_height
    edges = (
        (x * 2 * unit, (x + width) * 2 * unit),
        (y * 2 * unit, (y + depth) * 2 * unit),
        (bottom_level * 2 * level, (elevation + 1) * 2 * level),
    )
    centers = [_span(low, high) for low, high in edges]
    brick = Brick(
        x=x,
        y=y,
        width=width,
        depth=depth,
        elevation=elevation,
        position=tuple(center for center, _ in centers),
        size=tuple(half for _, half in centers),
        asset=options.asset,
        color=color,
    )
    return apply_policies(brick, options)


def apply_policies(brick: Brick, options: GenOptions) -> Brick:
    brick = replace(brick, collision=not options.nocollide, glow=options.glow)
    if options.snap:
        brick = snap_brick(brick, options.grid_unit)
    return brick


def snap_brick(brick: Brick, grid_unit: Tuple[int, int]) -> Brick:
    """Round every face to the brick grid.

    Faces are rounded rather than centers so bricks sharing a face still
    share it afterwards.
    """
    horizontal, vertical = grid_unit
    units = (horizontal, horizontal, vertical)
    spans = [
        _span(*_snap_edges(center - half, center + half, unit))
        for center, half, unit in zip(brick.position, brick.size, units)
    ]
    return replace(
        brick,
        position=tuple(center for center, _ in spans),
        size=tuple(half for _, half in spans),
    )
