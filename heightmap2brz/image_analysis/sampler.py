"""Decode heightmap and colormap images into immutable numeric grids."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from heightmap2brz.errors import DimensionMismatchError, ImageDecodeError, ImageReadError, OptionsError
from heightmap2brz.image_analysis.color import DEFAULT_COLOR, RGBA, linearize_rgba, pack_rgba
from heightmap2brz.options import GenOptions

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg"}
STANDARD_MAX_INTENSITY = 255
HD_MAX_INTENSITY = (1 << 24) - 1


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class HeightGrid:
    """Row-major ``height x width`` elevations sampled from heightmap pixels."""

    values: np.ndarray
    max_intensity: int = STANDARD_MAX_INTENSITY

    def __post_init__(self) -> None:
        values = np.ascontiguousarray(self.values, dtype=np.uint32)
        if values.ndim != 2:
            raise DimensionMismatchError(f"Height grid must be 2-D, got shape {values.shape}")
        object.__setattr__(self, "values", _freeze(values))

    @classmethod
    def flat(cls, width: int, height: int) -> "HeightGrid":
        return cls(np.zeros((height, width), dtype=np.uint32))

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def height(self) -> int:
        return int(self.values.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class ColorGrid:
    """``height x width x 4`` RGBA samples, linearized when ``linear`` is set."""

    rgba: np.ndarray
    linear: bool = False

    def __post_init__(self) -> None:
        rgba = np.ascontiguousarray(self.rgba, dtype=np.uint8)
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise DimensionMismatchError(f"Color grid must be H x W x 4, got shape {rgba.shape}")
        object.__setattr__(self, "rgba", _freeze(rgba))

    @classmethod
    def uniform(cls, width: int, height: int, color: RGBA = DEFAULT_COLOR) -> "ColorGrid":
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[...] = color
        return cls(rgba)

    @property
    def width(self) -> int:
        return int(self.rgba.shape[1])

    @property
    def height(self) -> int:
        return int(self.rgba.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def keys(self) -> np.ndarray:
        """Packed uint32 color per cell, the representation used for equality."""
        return pack_rgba(self.rgba)

    def transparent(self) -> np.ndarray:
        return self.rgba[..., 3] == 0


def _check_extension(path: Path) -> None:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ImageDecodeError(suffix.lstrip(".") or "<none>", f"expected png/jpg for {path.name}")


def _open_image(path: Path, mode: str) -> np.ndarray:
    path = Path(path)
    _check_extension(path)
    try:
        with Image.open(path) as img:
            img.load()
            converted = img.convert(mode)
    except UnidentifiedImageError as exc:
        raise ImageDecodeError(path.suffix.lstrip(".").lower(), f"cannot identify {path.name}") from exc
    except Image.DecompressionBombError as exc:
        raise ImageDecodeError(path.suffix.lstrip(".").lower(), str(exc)) from exc
    except OSError as exc:
        if isinstance(exc, (FileNotFoundError, PermissionError, IsADirectoryError)):
            raise ImageReadError(path, exc.strerror) from exc
        raise ImageDecodeError(path.suffix.lstrip(".").lower(), str(exc)) from exc
    return np.array(converted, dtype=np.uint8)


def _decode_heights(path: Path, hdmap: bool) -> np.ndarray:
    if hdmap:
        rgb = _open_image(path, "RGB").astype(np.uint32)
        return (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]
    return _open_image(path, "L").astype(np.uint32)


def load_heightmap(paths: Sequence[Path] | Path, hdmap: bool = False) -> HeightGrid:
    """Decode one or more heightmap tiles, concatenated left to right."""
    if isinstance(paths, (str, Path)):
        paths = [paths]
    paths = [Path(p) for p in paths]
    if not paths:
        raise ImageReadError("<none>", "no heightmap files given")
    tiles: List[np.ndarray] = []
    for path in paths:
        tile = _decode_heights(path, hdmap)
        if tiles and tile.shape[0] != tiles[0].shape[0]:
            raise DimensionMismatchError(
                f"Heightmap {path.name} is {tile.shape[0]}px tall, expected {tiles[0].shape[0]}px"
            )
        logger.debug("Decoded heightmap tile %s (%dx%d)", path, tile.shape[1], tile.shape[0])
        tiles.append(tile)
    values = tiles[0] if len(tiles) == 1 else np.hstack(tiles)
    return HeightGrid(values, HD_MAX_INTENSITY if hdmap else STANDARD_MAX_INTENSITY)


def load_colormap(path: Path, lrgb: bool = False) -> ColorGrid:
    rgba = _open_image(Path(path), "RGBA")
    if lrgb:
        rgba = linearize_rgba(rgba)
    return ColorGrid(rgba, linear=lrgb)


def load_maps(
    heightmaps: Optional[Iterable[Path]],
    colormap: Optional[Path],
    options: GenOptions,
) -> Tuple[HeightGrid, ColorGrid]:
    """Sample both inputs, honouring image mode; sizes must agree."""
    heightmap_paths = [Path(p) for p in (heightmaps or [])]
    color_grid = load_colormap(colormap, options.lrgb) if colormap is not None else None

    if options.img:
        if color_grid is None:
            raise OptionsError("image mode requires a colormap")
        return HeightGrid.flat(color_grid.width, color_grid.height), color_grid

    height_grid = load_heightmap(heightmap_paths, options.hdmap)
    if color_grid is None:
        return height_grid, ColorGrid.uniform(height_grid.width, height_grid.height)
    if color_grid.size != height_grid.size:
        raise DimensionMismatchError(
            "Heightmap and colormap are not the same size: "
            f"{height_grid.width}x{height_grid.height} vs {color_grid.width}x{color_grid.height}"
        )
    return height_grid, color_grid
