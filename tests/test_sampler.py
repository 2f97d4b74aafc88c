import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from heightmap2brz.errors import DimensionMismatchError, ImageDecodeError, ImageReadError, OptionsError
from heightmap2brz.image_analysis.color import SRGB_TO_LINEAR_LUT, pack_rgba, unpack_rgba
from heightmap2brz.image_analysis.sampler import (
    HD_MAX_INTENSITY,
    load_colormap,
    load_heightmap,
    load_maps,
)
from heightmap2brz.options import GenOptions


def _write_gray(path, values):
    Image.fromarray(np.asarray(values, dtype=np.uint8)).save(path)
    return path


def _write_rgba(path, values):
    Image.fromarray(np.asarray(values, dtype=np.uint8)).save(path)
    return path


def test_heightmap_tiles_concatenate_left_to_right(tmp_path):
    left = _write_gray(tmp_path / "left.png", [[1, 2], [3, 4]])
    right = _write_gray(tmp_path / "right.png", [[5], [6]])
    grid = load_heightmap([left, right])
    assert grid.size == (3, 2)
    assert grid.values.tolist() == [[1, 2, 5], [3, 4, 6]]
    assert grid.max_intensity == 255


def test_heightmap_tiles_must_share_height(tmp_path):
    left = _write_gray(tmp_path / "left.png", [[1, 2], [3, 4]])
    right = _write_gray(tmp_path / "right.png", [[5, 6, 7]])
    with pytest.raises(DimensionMismatchError):
        load_heightmap([left, right])


def test_hdmap_combines_channels(tmp_path):
    path = tmp_path / "hd.png"
    Image.fromarray(np.array([[[1, 2, 3]]], dtype=np.uint8)).save(path)
    grid = load_heightmap(path, hdmap=True)
    assert grid.values[0, 0] == (1 << 16) | (2 << 8) | 3
    assert grid.max_intensity == HD_MAX_INTENSITY


def test_unsupported_extension_is_decode_error(tmp_path):
    path = tmp_path / "height.bmp"
    path.write_bytes(b"BM")
    with pytest.raises(ImageDecodeError) as excinfo:
        load_heightmap(path)
    assert excinfo.value.format == "bmp"


def test_garbage_png_is_decode_error(tmp_path):
    path = tmp_path / "height.png"
    path.write_bytes(b"not really a png")
    with pytest.raises(ImageDecodeError):
        load_heightmap(path)


def test_missing_file_is_read_error(tmp_path):
    with pytest.raises(ImageReadError) as excinfo:
        load_heightmap(tmp_path / "missing.png")
    assert isinstance(excinfo.value, OSError)
    assert excinfo.value.path.name == "missing.png"


def test_lrgb_linearizes_color_but_not_alpha(tmp_path):
    path = _write_rgba(tmp_path / "color.png", [[[128, 64, 255, 100]]])
    srgb = load_colormap(path)
    linear = load_colormap(path, lrgb=True)
    assert tuple(srgb.rgba[0, 0]) == (128, 64, 255, 100)
    assert tuple(linear.rgba[0, 0]) == (
        SRGB_TO_LINEAR_LUT[128],
        SRGB_TO_LINEAR_LUT[64],
        255,
        100,
    )
    assert linear.linear


def test_pack_rgba_orders_red_first():
    key = pack_rgba(np.array([1, 2, 3, 4], dtype=np.uint8))
    assert int(key) == 0x01020304
    assert unpack_rgba(key) == (1, 2, 3, 4)


def test_missing_colormap_uses_uniform_white(tmp_path):
    height = _write_gray(tmp_path / "height.png", np.zeros((2, 3)))
    heights, colors = load_maps([height], None, GenOptions())
    assert colors.size == heights.size == (3, 2)
    assert (colors.rgba == 255).all()


def test_colormap_size_must_match(tmp_path):
    height = _write_gray(tmp_path / "height.png", np.zeros((2, 2)))
    color = _write_rgba(tmp_path / "color.png", np.zeros((3, 2, 4)))
    with pytest.raises(DimensionMismatchError):
        load_maps([height], color, GenOptions())


def test_image_mode_builds_flat_grid_from_colormap(tmp_path):
    color = _write_rgba(tmp_path / "color.png", np.full((2, 5, 4), 200))
    heights, colors = load_maps([], color, GenOptions(img=True))
    assert heights.size == colors.size == (5, 2)
    assert not heights.values.any()


def test_image_mode_requires_colormap():
    with pytest.raises(OptionsError):
        load_maps([], None, GenOptions(img=True))


def test_grids_are_read_only(tmp_path):
    height = _write_gray(tmp_path / "height.png", np.zeros((2, 2)))
    heights, _ = load_maps([height], None, GenOptions())
    with pytest.raises(ValueError):
        heights.values[0, 0] = 1


def test_oversized_image_is_decode_error(tmp_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    path = _write_gray(tmp_path / "huge.png", np.zeros((20, 20)))
    with pytest.raises(ImageDecodeError) as excinfo:
        load_heightmap(path)
    assert excinfo.value.format == "png"
