"""In-memory save document assembled from a finished brick set."""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from heightmap2brz.image_analysis.color import RGBA
from heightmap2brz.optimizer.models import Brick, BrickSet

PLASTIC_MATERIAL = "BMC_Plastic"
GLOW_MATERIAL = "BMC_Glow"
DEFAULT_INTENSITY = 5
GLOW_INTENSITY = 1
MAX_INTENSITY = 10

DEFAULT_OWNER_ID = uuid.UUID("a1b16aca-9627-4a16-a160-67fa9adbb7b6")
DEFAULT_OWNER_NAME = "Generator"


@dataclass
class SaveOwner:
    id: uuid.UUID = DEFAULT_OWNER_ID
    name: str = DEFAULT_OWNER_NAME


@dataclass
class SaveDocument:
    """Bricks plus the lookup tables both save formats index into."""

    bricks: List[Brick]
    assets: List[object] = field(default_factory=list)
    colors: List[RGBA] = field(default_factory=list)
    materials: List[str] = field(default_factory=lambda: [PLASTIC_MATERIAL, GLOW_MATERIAL])
    owners: List[SaveOwner] = field(default_factory=lambda: [SaveOwner()])
    map_name: str = "Plate"
    description: str = "Generated by heightmap2brz"
    author: SaveOwner = field(default_factory=SaveOwner)
    saved_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def brick_count(self) -> int:
        return len(self.bricks)

    def color_index(self) -> Dict[RGBA, int]:
        return {color: index for index, color in enumerate(self.colors)}

    def asset_index(self) -> Dict[object, int]:
        return {asset: index for index, asset in enumerate(self.assets)}

    @staticmethod
    def material_for(brick: Brick) -> Tuple[str, int]:
        if brick.glow:
            return GLOW_MATERIAL, GLOW_INTENSITY
        return PLASTIC_MATERIAL, DEFAULT_INTENSITY


def bricks_to_save(
    bricks: BrickSet,
    owner: Optional[SaveOwner] = None,
    description: Optional[str] = None,
    saved_at_ms: Optional[int] = None,
) -> SaveDocument:
    """Wrap ``bricks`` with asset and color tables in first-use order.

    Pass ``saved_at_ms`` to pin the save time; the same bricks and time then
    encode to the same bytes.
    """
    assets: List[object] = []
    colors: List[RGBA] = []
    seen_assets = set()
    seen_colors = set()
    for brick in bricks:
        if brick.asset not in seen_assets:
            seen_assets.add(brick.asset)
            assets.append(brick.asset)
        if brick.color not in seen_colors:
            seen_colors.add(brick.color)
            colors.append(brick.color)
    owner = owner or SaveOwner()
    document = SaveDocument(
        bricks=list(bricks),
        assets=assets,
        colors=colors,
        owners=[owner],
        author=owner,
    )
    if description is not None:
        document.description = description
    if saved_at_ms is not None:
        document.saved_at_ms = saved_at_ms
    return document
