"""
Unit tests for rasterized canopy cover.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import DomainError, canopy_cover, coverage_grid
from stand_pattern.canopy import INDEX_THRESHOLD, bucket_layout

METHODS = ["direct", "indexed", "parallel", "hybrid"]


def _brute_grid(x, y, radius, plot_size, grid_res):
    n_cells = math.ceil(plot_size / grid_res)
    centres = (np.arange(n_cells) + 0.5) * grid_res
    cx, cy = np.meshgrid(centres, centres)
    grid = np.zeros((n_cells, n_cells), dtype=bool)
    for px, py, r in zip(x, y, radius):
        dx = cx - px
        dy = cy - py
        grid |= dx * dx + dy * dy <= r * r
    return grid


@pytest.mark.parametrize("method", METHODS)
def test_single_crown_cell_count(method):
    """Crown r=3 at (5, 5) on a 10 m plot with 1 m cells covers 32 cell centres."""
    cover = canopy_cover([5.0], [5.0], [3.0], 10.0, grid_res=1.0, method=method)
    assert cover == pytest.approx(0.32)
    # Within a perimeter band of the exact disc fraction
    assert abs(cover - 9.0 * math.pi / 100.0) < 2.0 * math.pi * 3.0 * 1.0 / 100.0


@pytest.fixture
def stand():
    rng = np.random.default_rng(11)
    n = 150
    x = rng.uniform(-2.0, 42.0, n)
    y = rng.uniform(-2.0, 42.0, n)
    radius = rng.uniform(0.0, 3.5, n)
    radius[::10] = 0.0
    return x, y, radius


def test_variants_are_bit_identical(stand):
    x, y, radius = stand
    grids = [coverage_grid(x, y, radius, 40.0, grid_res=0.5, method=m, n_threads=2) for m in METHODS]
    reference = _brute_grid(x, y, radius, 40.0, 0.5)
    for grid in grids:
        np.testing.assert_array_equal(grid, reference)
    covers = {canopy_cover(x, y, radius, 40.0, grid_res=0.5, method=m) for m in METHODS}
    assert len(covers) == 1


def test_zero_radius_covers_its_cell_centre():
    cover = canopy_cover([2.25], [2.25], [0.0], 10.0, grid_res=0.5)
    assert cover == pytest.approx(1.0 / 400.0)
    assert canopy_cover([2.3], [2.25], [0.0], 10.0, grid_res=0.5) == 0.0


@pytest.mark.parametrize("method", METHODS + ["auto"])
def test_no_crowns(method):
    assert canopy_cover([], [], [], 10.0, method=method) == 0.0
    grid = coverage_grid([], [], [], 10.0, grid_res=1.0, method=method)
    assert grid.shape == (10, 10)
    assert not grid.any()


def test_full_cover():
    assert canopy_cover([5.0], [5.0], [20.0], 10.0, grid_res=0.5, method="hybrid") == 1.0


def test_grid_shape_rounds_up():
    grid = coverage_grid([5.0], [5.0], [1.0], 10.0, grid_res=3.0)
    assert grid.shape == (4, 4)


def test_grid_orientation():
    """Rows follow y, columns follow x."""
    grid = coverage_grid([1.5], [8.5], [0.1], 10.0, grid_res=1.0)
    assert grid[8, 1]
    assert grid.sum() == 1


def test_auto_matches_direct(stand):
    x, y, radius = stand
    assert len(x) < INDEX_THRESHOLD
    assert canopy_cover(x, y, radius, 40.0, method="auto") == canopy_cover(x, y, radius, 40.0)


def test_invalid_input():
    with pytest.raises(DomainError):
        canopy_cover([1.0], [1.0], [-1.0], 10.0)
    with pytest.raises(DomainError):
        canopy_cover([1.0, 2.0], [1.0], [1.0, 1.0], 10.0)
    with pytest.raises(DomainError):
        canopy_cover([1.0], [1.0], [1.0], 0.0)
    with pytest.raises(DomainError):
        canopy_cover([1.0], [1.0], [1.0], 10.0, grid_res=-0.5)
    with pytest.raises(DomainError):
        canopy_cover([1.0], [1.0], [1.0], 10.0, method="quadtree")


@pytest.mark.parametrize(
    "radius, layout",
    [([1.0, 2.0], (5.0, 1)), ([0.0], (5.0, 0)), ([10.0], (20.0, 1))],
)
def test_bucket_layout(radius, layout):
    assert bucket_layout(np.array(radius)) == layout


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
