"""Image sampling helpers used by heightmap2brz."""

from .color import DEFAULT_COLOR, linearize_rgba, pack_rgba, srgb_to_linear, unpack_rgba
from .sampler import ColorGrid, HeightGrid, load_colormap, load_heightmap, load_maps

__all__ = [
    "DEFAULT_COLOR",
    "linearize_rgba",
    "pack_rgba",
    "srgb_to_linear",
    "unpack_rgba",
    "ColorGrid",
    "HeightGrid",
    "load_colormap",
    "load_heightmap",
    "load_maps",
]
