"""
Canopy cover by rasterizing circular crown footprints.

The plot ``[0, plot_size)^2`` is divided into ``ceil(plot_size / grid_res)``
cells per side. A cell is covered when its centre lies within at least one
crown radius (planar distance); cover is the covered fraction of cells.

Four rasterizers produce bit-identical grids:

- ``direct``: per crown, test the cells of its clamped bounding box.
- ``indexed``: per cell, test only crowns in nearby index buckets.
- ``parallel``: cell rows split across numba workers, every crown tested.
- ``hybrid``: cell rows split across workers, crowns taken from the index.

All of them evaluate the same ``_covers`` expression and are compiled without
``fastmath`` so no variant can reassociate the arithmetic.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
from numba import njit, prange

from . import validation
from .log import get_logger
from .parallel import thread_scope
from .spatial_index import BucketIndex, bucket_coord

logger = get_logger(__name__)

###############################################################################
# Constants
###############################################################################

DEFAULT_GRID_RES = 0.5  # metres
MIN_BUCKET_SIZE = 5.0  # floor of the index cell size, metres
INDEX_THRESHOLD = 500  # crowns above which "auto" switches to the hybrid rasterizer

COVER_METHODS = ("direct", "indexed", "parallel", "hybrid", "auto")

###############################################################################
# Cell tests
###############################################################################


@njit(cache=True)
def _cell_centre(i: int, grid_res: float) -> float:
    return (i + 0.5) * grid_res


@njit(cache=True)
def _covers(cx: float, cy: float, px: float, py: float, r: float) -> bool:
    dx = cx - px
    dy = cy - py
    return dx * dx + dy * dy <= r * r


@njit(cache=True)
def _covered_by_any(cx: float, cy: float, x: np.ndarray, y: np.ndarray, radius: np.ndarray) -> bool:
    for i in range(x.shape[0]):
        if _covers(cx, cy, x[i], y[i], radius[i]):
            return True
    return False


@njit(cache=True)
def _covered_by_bucket(
    cx: float,
    cy: float,
    x: np.ndarray,
    y: np.ndarray,
    radius: np.ndarray,
    head: np.ndarray,
    link: np.ndarray,
    cell_size: float,
    bucket_radius: int,
) -> bool:
    nb_y, nb_x = head.shape
    bx0 = bucket_coord(cx, cell_size, nb_x, False)
    by0 = bucket_coord(cy, cell_size, nb_y, False)
    for by in range(max(0, by0 - bucket_radius), min(nb_y, by0 + bucket_radius + 1)):
        for bx in range(max(0, bx0 - bucket_radius), min(nb_x, bx0 + bucket_radius + 1)):
            p = head[by, bx]
            while p >= 0:
                if _covers(cx, cy, x[p], y[p], radius[p]):
                    return True
                p = link[p]
    return False


###############################################################################
# Rasterizers
###############################################################################


@njit(cache=True)
def _raster_direct(x: np.ndarray, y: np.ndarray, radius: np.ndarray, n_cells: int, grid_res: float) -> np.ndarray:
    grid = np.zeros((n_cells, n_cells), dtype=np.uint8)
    for i in range(x.shape[0]):
        r = radius[i]
        # Bounding box in cell coordinates, clamped to the grid
        x_min = max(0, int(math.floor((x[i] - r) / grid_res)))
        x_max = min(n_cells - 1, int(math.ceil((x[i] + r) / grid_res)))
        y_min = max(0, int(math.floor((y[i] - r) / grid_res)))
        y_max = min(n_cells - 1, int(math.ceil((y[i] + r) / grid_res)))
        for yi in range(y_min, y_max + 1):
            cy = _cell_centre(yi, grid_res)
            for xi in range(x_min, x_max + 1):
                if grid[yi, xi]:
                    continue
                if _covers(_cell_centre(xi, grid_res), cy, x[i], y[i], r):
                    grid[yi, xi] = 1
    return grid


@njit(cache=True)
def _raster_indexed(
    x: np.ndarray,
    y: np.ndarray,
    radius: np.ndarray,
    n_cells: int,
    grid_res: float,
    head: np.ndarray,
    link: np.ndarray,
    cell_size: float,
    bucket_radius: int,
) -> np.ndarray:
    grid = np.zeros((n_cells, n_cells), dtype=np.uint8)
    for yi in range(n_cells):
        cy = _cell_centre(yi, grid_res)
        for xi in range(n_cells):
            cx = _cell_centre(xi, grid_res)
            if _covered_by_bucket(cx, cy, x, y, radius, head, link, cell_size, bucket_radius):
                grid[yi, xi] = 1
    return grid


@njit(cache=True, parallel=True)
def _raster_parallel(x: np.ndarray, y: np.ndarray, radius: np.ndarray, n_cells: int, grid_res: float) -> np.ndarray:
    grid = np.zeros((n_cells, n_cells), dtype=np.uint8)
    # Each worker owns whole rows, so no cell is written by two workers.
    for yi in prange(n_cells):
        cy = _cell_centre(yi, grid_res)
        for xi in range(n_cells):
            if _covered_by_any(_cell_centre(xi, grid_res), cy, x, y, radius):
                grid[yi, xi] = 1
    return grid


@njit(cache=True, parallel=True)
def _raster_hybrid(
    x: np.ndarray,
    y: np.ndarray,
    radius: np.ndarray,
    n_cells: int,
    grid_res: float,
    head: np.ndarray,
    link: np.ndarray,
    cell_size: float,
    bucket_radius: int,
) -> np.ndarray:
    grid = np.zeros((n_cells, n_cells), dtype=np.uint8)
    for yi in prange(n_cells):
        cy = _cell_centre(yi, grid_res)
        for xi in range(n_cells):
            cx = _cell_centre(xi, grid_res)
            if _covered_by_bucket(cx, cy, x, y, radius, head, link, cell_size, bucket_radius):
                grid[yi, xi] = 1
    return grid


@njit(cache=True, parallel=True)
def _count_covered(grid: np.ndarray) -> int:
    total = 0
    for yi in prange(grid.shape[0]):
        row = 0
        for xi in range(grid.shape[1]):
            row += grid[yi, xi]
        total += row
    return total


###############################################################################
# Public interface
###############################################################################


def bucket_layout(radius: np.ndarray) -> Tuple[float, int]:
    """Index cell size ``max(2 * max_r, MIN_BUCKET_SIZE)`` and the bucket search radius."""
    max_r = float(radius.max()) if radius.size else 0.0
    cell_size = max(2.0 * max_r, MIN_BUCKET_SIZE)
    return cell_size, int(math.ceil(max_r / cell_size))


def _select_method(method: str, n: int) -> str:
    if method != "auto":
        return method
    return "direct" if n < INDEX_THRESHOLD else "hybrid"


def _rasterize(x, y, radius, plot_size, grid_res, method, n_threads) -> Tuple[np.ndarray, int]:
    xs, ys = validation.as_coords(x, y, allow_empty=True)
    rs = validation.as_radius(radius, len(xs), allow_empty=True)
    plot_size = validation.check_positive("plot_size", plot_size)
    grid_res = validation.check_positive("grid_res", grid_res)
    validation.check_choice("method", method, COVER_METHODS)

    n_cells = int(math.ceil(plot_size / grid_res))
    chosen = _select_method(method, len(xs))
    logger.debug("canopy raster %dx%d, crowns=%d, method=%s", n_cells, n_cells, len(xs), chosen)

    if len(xs) == 0:
        return np.zeros((n_cells, n_cells), dtype=np.uint8), 0

    if chosen == "direct":
        grid = _raster_direct(xs, ys, rs, n_cells, grid_res)
        return grid, int(np.count_nonzero(grid))
    if chosen == "parallel":
        with thread_scope(n_threads):
            grid = _raster_parallel(xs, ys, rs, n_cells, grid_res)
            return grid, int(_count_covered(grid))

    cell_size, bucket_radius = bucket_layout(rs)
    index = BucketIndex.build(xs, ys, plot_size, plot_size, cell_size)
    if chosen == "indexed":
        grid = _raster_indexed(xs, ys, rs, n_cells, grid_res, index.head, index.link, cell_size, bucket_radius)
        return grid, int(np.count_nonzero(grid))
    with thread_scope(n_threads):
        grid = _raster_hybrid(xs, ys, rs, n_cells, grid_res, index.head, index.link, cell_size, bucket_radius)
        return grid, int(_count_covered(grid))


def coverage_grid(
    x,
    y,
    radius,
    plot_size: float,
    grid_res: float = DEFAULT_GRID_RES,
    method: str = "direct",
    n_threads: Optional[int] = None,
) -> np.ndarray:
    """
    Boolean coverage grid indexed ``[row, col] = [y cell, x cell]``.

    Args:
        x, y: Crown centres.
        radius: Crown radii (>= 0).
        plot_size: Side of the square plot.
        grid_res: Cell side.
        method: ``"direct"``, ``"indexed"``, ``"parallel"``, ``"hybrid"`` or
            ``"auto"``.
        n_threads: Worker count for the parallel rasterizers.
    """
    grid, _ = _rasterize(x, y, radius, plot_size, grid_res, method, n_threads)
    return grid.astype(bool)


def canopy_cover(
    x,
    y,
    radius,
    plot_size: float,
    grid_res: float = DEFAULT_GRID_RES,
    method: str = "direct",
    n_threads: Optional[int] = None,
) -> float:
    """
    Fraction of plot cells whose centre lies under at least one crown.

    Zero crowns give 0.0. See :func:`coverage_grid` for the arguments.

    Raises:
        DomainError: Mismatched lengths, negative radii, non-positive
            ``plot_size``/``grid_res`` or an unknown method.
    """
    grid, covered = _rasterize(x, y, radius, plot_size, grid_res, method, n_threads)
    return covered / grid.size


__all__ = [
    "COVER_METHODS",
    "DEFAULT_GRID_RES",
    "INDEX_THRESHOLD",
    "MIN_BUCKET_SIZE",
    "bucket_layout",
    "canopy_cover",
    "coverage_grid",
]
