"""Brick placements produced by the optimizer."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Tuple

from heightmap2brz.image_analysis.color import RGBA
from heightmap2brz.options import BrickAsset

Vector3 = Tuple[int, int, int]


@dataclass(frozen=True)
class Brick:
    """One placed brick.

    ``x``/``y``/``width``/``depth`` describe the footprint in grid cells and
    ``elevation`` the quantized level of its top face. ``position`` (center)
    and ``size`` (half-extents) are in game units, as the save formats store
    them.
    """

    x: int
    y: int
    width: int
    depth: int
    elevation: int
    position: Vector3
    size: Vector3
    asset: BrickAsset
    color: RGBA
    collision: bool = True
    glow: bool = False

    @property
    def footprint(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.depth

    @property
    def bottom(self) -> int:
        return self.position[2] - self.size[2]

    @property
    def top(self) -> int:
        return self.position[2] + self.size[2]


@dataclass(frozen=True)
class BrickSet:
    """Ordered bricks covering a ``width x height`` cell grid."""

    bricks: Tuple[Brick, ...]
    width: int
    height: int
    strategy: str = "none"
    metadata: dict = field(default_factory=dict, compare=False)

    def __len__(self) -> int:
        return len(self.bricks)

    def __iter__(self) -> Iterator[Brick]:
        return iter(self.bricks)

    def __getitem__(self, index: int) -> Brick:
        return self.bricks[index]
