import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from heightmap2brz.errors import GenerationCancelled
from heightmap2brz.image_analysis.sampler import ColorGrid, HeightGrid
from heightmap2brz.optimizer.core import generate_bricks
from heightmap2brz.optimizer.levels import quantize_levels
from heightmap2brz.optimizer.progress import CancellationToken, ProgressTracker
from heightmap2brz.options import BrickAsset, GenOptions


def _grids(levels, rgba=None):
    heights = HeightGrid(np.asarray(levels, dtype=np.uint32))
    if rgba is None:
        colors = ColorGrid.uniform(heights.width, heights.height)
    else:
        colors = ColorGrid(np.asarray(rgba, dtype=np.uint8))
    return heights, colors


def test_uniform_grid_without_optimization_gives_one_brick_per_cell():
    heights, colors = _grids(np.full((4, 4), 10))
    bricks = generate_bricks(heights, colors, GenOptions())
    assert len(bricks) == 16
    assert {(b.width, b.depth) for b in bricks} == {(1, 1)}
    assert {b.elevation for b in bricks} == {10}
    first = bricks[0]
    assert first.position == (5, 5, 21)
    assert first.size == (5, 5, 1)
    assert first.asset is BrickAsset.DEFAULT


def test_brick_count_matches_grid_for_any_shape():
    rng = np.random.default_rng(3)
    heights, colors = _grids(rng.integers(0, 256, size=(5, 7)))
    bricks = generate_bricks(heights, colors, GenOptions())
    assert len(bricks) == 35
    assert sorted(b.footprint for b in bricks) == sorted((x, y, 1, 1) for y in range(5) for x in range(7))


def test_image_mode_flat_grid_matches_colormap():
    rgba = np.zeros((3, 6, 4), dtype=np.uint8)
    rgba[..., 0] = np.arange(6)
    rgba[..., 3] = 255
    heights = HeightGrid.flat(6, 3)
    bricks = generate_bricks(heights, ColorGrid(rgba), GenOptions(img=True))
    assert len(bricks) == 18
    assert {b.elevation for b in bricks} == {0}
    assert bricks.width == 6 and bricks.height == 3


def test_quantization_keeps_full_hd_resolution():
    top = (1 << 24) - 1
    heights = HeightGrid(np.array([[0, 1, 2, 1 << 23, top]], dtype=np.uint32), max_intensity=top)
    assert quantize_levels(heights, 1).tolist() == [[0, 1, 2, 1 << 23, top]]
    assert quantize_levels(heights, 2)[0, 1] == 2
    standard = HeightGrid(np.array([[7]], dtype=np.uint32))
    assert quantize_levels(standard, 3).tolist() == [[21]]


def test_large_hd_levels_keep_neighbour_floor_and_cull_exact():
    top = (1 << 24) - 1
    heights = HeightGrid(np.array([[0, top, top - 1]], dtype=np.uint32), max_intensity=top)
    colors = ColorGrid.uniform(3, 1)
    low, high, lower = generate_bricks(heights, colors, GenOptions(scale=100, hdmap=True))
    assert high.elevation == top * 100
    assert lower.elevation == (top - 1) * 100
    assert high.bottom == 0
    assert lower.bottom == (top - 1) * 100 * 2
    culled = generate_bricks(heights, colors, GenOptions(scale=100, hdmap=True, cull=True))
    assert len(culled) == 3


def test_bottoms_reach_down_to_lowest_neighbour():
    heights, colors = _grids([[0, 3]])
    low, high = generate_bricks(heights, colors, GenOptions())
    assert (low.bottom, low.top) == (0, 2)
    assert (high.bottom, high.top) == (0, 8)


def test_micro_and_stud_geometry():
    heights, colors = _grids([[2]])
    (micro,) = generate_bricks(heights, colors, GenOptions.for_mode("micro", size=2))
    assert micro.size[:2] == (2, 2)
    (stud,) = generate_bricks(heights, colors, GenOptions.for_mode("stud"))
    assert stud.top == 30


def test_cull_removes_transparent_and_isolated_bottom_cells():
    levels = np.zeros((5, 5))
    levels[2, 2] = 5
    rgba = np.full((5, 5, 4), 255, dtype=np.uint8)
    rgba[2, 1, 3] = 0
    heights, colors = _grids(levels, rgba)
    bricks = generate_bricks(heights, colors, GenOptions(cull=True))
    kept = {(b.x, b.y) for b in bricks}
    assert kept == {(x, y) for y in range(1, 4) for x in range(1, 4)} - {(1, 2)}


def test_cull_in_image_mode_only_drops_transparent_cells():
    rgba = np.full((2, 2, 4), 255, dtype=np.uint8)
    rgba[0, 0, 3] = 0
    bricks = generate_bricks(HeightGrid.flat(2, 2), ColorGrid(rgba), GenOptions(img=True, cull=True))
    assert len(bricks) == 3


@pytest.mark.parametrize("options", [GenOptions(snap=True), GenOptions.for_mode("micro", snap=True, size=3)])
def test_snap_aligns_every_brick_to_the_grid(options):
    rng = np.random.default_rng(11)
    heights, colors = _grids(rng.integers(0, 40, size=(6, 6)))
    horizontal, vertical = options.grid_unit
    for strategy in ("none", "quadtree", "greedy"):
        bricks = generate_bricks(heights, colors, options.with_strategy(strategy))
        for brick in bricks:
            assert brick.position[0] % horizontal == 0 and brick.position[1] % horizontal == 0
            assert brick.size[0] % horizontal == 0 and brick.size[1] % horizontal == 0
            assert brick.position[2] % vertical == 0 and brick.size[2] % vertical == 0
            assert min(brick.size) > 0


def test_glow_and_nocollide_are_applied_to_every_brick():
    heights, colors = _grids(np.ones((2, 2)))
    bricks = generate_bricks(heights, colors, GenOptions(glow=True, nocollide=True, quadtree=True))
    assert all(b.glow and not b.collision for b in bricks)


def test_progress_is_monotonic_and_finishes():
    seen = []
    heights, colors = _grids(np.arange(64).reshape(8, 8))
    tracker = ProgressTracker(lambda stage, fraction: seen.append((stage, fraction)))
    generate_bricks(heights, colors, GenOptions(), tracker.stage("Generating"))
    fractions = [fraction for _, fraction in seen]
    assert fractions == sorted(fractions)
    assert fractions[-1] == 1.0
    assert {stage for stage, _ in seen} == {"Generating"}


@pytest.mark.parametrize("strategy", ["none", "quadtree", "greedy"])
def test_cancelled_token_stops_before_any_cell(strategy):
    token = CancellationToken()
    token.cancel()
    heights, colors = _grids(np.arange(16).reshape(4, 4))
    progress = ProgressTracker(cancel=token).stage("Generating")
    with pytest.raises(GenerationCancelled) as excinfo:
        generate_bricks(heights, colors, GenOptions().with_strategy(strategy), progress)
    assert excinfo.value.stage == "Generating"
    assert str(excinfo.value) == "Stopped by user during generating"


def test_reporter_returning_false_cancels():
    calls = []

    def reporter(stage, fraction):
        calls.append(fraction)
        return False

    heights, colors = _grids(np.zeros((10, 10)))
    with pytest.raises(GenerationCancelled):
        generate_bricks(heights, colors, GenOptions(), ProgressTracker(reporter).stage("Generating"))
    assert len(calls) == 1


def test_tracker_coalesces_small_steps():
    seen = []
    tracker = ProgressTracker(lambda stage, fraction: seen.append(fraction), min_step=0.1)
    for step in range(101):
        tracker.report("Generating", step / 100)
    assert seen[-1] == 1.0
    assert len(seen) <= 12
