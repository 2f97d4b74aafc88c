"""Generator configuration: brick families, merge strategies and GenOptions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from heightmap2brz.errors import OptionsError

logger = logging.getLogger(__name__)

SIZE_RANGE = (1, 100)
SCALE_RANGE = (1, 100)


class BrickAsset(str, Enum):
    DEFAULT = "DEFAULT"
    TILE = "TILE"
    SMOOTH_TILE = "SMOOTH_TILE"
    STUD = "STUD"
    MICRO = "MICRO"


ASSET_NAMES: Dict[BrickAsset, str] = {
    BrickAsset.DEFAULT: "PB_DefaultBrick",
    BrickAsset.TILE: "PB_DefaultTile",
    BrickAsset.SMOOTH_TILE: "PB_DefaultSmoothTile",
    BrickAsset.STUD: "PB_DefaultStudded",
    BrickAsset.MICRO: "PB_DefaultMicroBrick",
}


class Strategy(str, Enum):
    NONE = "none"
    QUADTREE = "quadtree"
    GREEDY = "greedy"


def asset_name(asset: BrickAsset) -> str:
    return ASSET_NAMES[BrickAsset(asset)]


@dataclass(frozen=True)
class GenOptions:
    """Immutable record controlling sampling, merging and brick output.

    ``size`` is the footprint of one pixel in studs (or microbricks when
    ``micro`` is set) and ``scale`` the number of elevation levels per grey
    step of an 8-bit heightmap.
    """

    size: int = 1
    scale: int = 1
    cull: bool = False
    nocollide: bool = False
    lrgb: bool = False
    snap: bool = False
    glow: bool = False
    hdmap: bool = False
    img: bool = False
    micro: bool = False
    stud: bool = False
    asset: BrickAsset = BrickAsset.DEFAULT
    quadtree: bool = False
    greedy: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "asset", _coerce_asset(self.asset))
        _check_range("size", self.size, SIZE_RANGE)
        _check_range("scale", self.scale, SCALE_RANGE)
        if self.quadtree and self.greedy:
            raise OptionsError("quadtree and greedy optimization are mutually exclusive")

    @classmethod
    def for_mode(cls, asset: BrickAsset | str, **kwargs: Any) -> "GenOptions":
        """Build options for a brick family, deriving ``micro``/``stud`` from it."""
        asset = _coerce_asset(asset)
        kwargs.setdefault("micro", asset is BrickAsset.MICRO)
        kwargs.setdefault("stud", asset is BrickAsset.STUD)
        return cls(asset=asset, **kwargs)

    @property
    def strategy(self) -> Strategy:
        if self.quadtree:
            return Strategy.QUADTREE
        if self.greedy:
            return Strategy.GREEDY
        return Strategy.NONE

    @property
    def unit_size(self) -> int:
        """Horizontal half-extent of one cell in game units."""
        return self.size if self.micro else self.size * 5

    @property
    def level_height(self) -> int:
        """Vertical half-extent of one elevation level in game units."""
        return 5 if self.stud else 1

    @property
    def grid_unit(self) -> Tuple[int, int]:
        """Snap grid as (horizontal, vertical) game units."""
        return (1, 1) if self.micro else (5, 2)

    def with_strategy(self, strategy: Strategy | str) -> "GenOptions":
        strategy = Strategy(strategy)
        return replace(
            self,
            quadtree=strategy is Strategy.QUADTREE,
            greedy=strategy is Strategy.GREEDY,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {field.name: getattr(self, field.name) for field in fields(self)}
        payload["asset"] = self.asset.value
        return payload


def _coerce_asset(value: Any) -> BrickAsset:
    if isinstance(value, BrickAsset):
        return value
    wanted = str(value).replace("_", "").upper()
    for asset in BrickAsset:
        if asset.value.replace("_", "") == wanted:
            return asset
    raise OptionsError(f"Unknown brick asset: {value!r}")


def _check_range(name: str, value: Any, bounds: Tuple[int, int]) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise OptionsError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise OptionsError(f"{name} must be between {low} and {high}, got {value}")


def options_from_dict(data: Dict[str, Any], base: Optional[GenOptions] = None) -> GenOptions:
    known = {field.name for field in fields(GenOptions)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise OptionsError(f"Unknown option(s): {', '.join(unknown)}")
    base = base or GenOptions()
    if "asset" in data and not {"micro", "stud"} & set(data):
        payload = base.to_dict()
        payload.update(data)
        asset = payload.pop("asset")
        payload.pop("micro", None)
        payload.pop("stud", None)
        return GenOptions.for_mode(asset, **payload)
    return replace(base, **data)


def load_options(path: Path, base: Optional[GenOptions] = None) -> GenOptions:
    """Load GenOptions from a YAML file; a missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        logger.debug("Options file %s not found, using defaults", path)
        return base or GenOptions()
    raw = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise OptionsError(f"Invalid options file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise OptionsError(f"Options file {path} must contain a mapping")
    section = data.get("heightmap2brz", data)
    if not isinstance(section, dict):
        raise OptionsError(f"Options section in {path} must be a mapping")
    return options_from_dict(section, base=base)
