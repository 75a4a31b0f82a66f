"""
k-nearest-neighbour distances for every point of a stand.

Three interchangeable searches return the same k smallest distances:

- ``brute``: every unordered pair is evaluated once and offered to both
  points' bounded max-heaps (capacity k + 1, replace-top in O(log k)).
- ``parallel``: the point range is split across numba workers; the worker that
  owns point ``i`` scans every ``j`` and writes row ``i`` only.
- ``indexed``: ring search over a bucket index that tiles the plot, stopping
  once no unscanned bucket can hold a closer point.

Toroidal distance is used when plot extents are given, planar distance
otherwise.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
from numba import njit, prange

from . import validation
from .distance import metric_distance
from .errors import DomainError
from .log import get_logger
from .parallel import thread_scope
from .spatial_index import BucketIndex, bucket_coord

logger = get_logger(__name__)

###############################################################################
# Constants
###############################################################################

# Seed of every neighbour heap; far above any plot diagonal in metres.
SENTINEL_DISTANCE = 1.0e10

# Mean points per bucket targeted by the indexed search.
BUCKET_OCCUPANCY = 2.0

KNN_METHODS = ("brute", "parallel", "indexed")

###############################################################################
# Bounded max-heap (one row of a 2-D array per point)
###############################################################################


@njit(cache=True)
def _heap_replace_top(heap: np.ndarray, row: int, value: float) -> None:
    """Replace the maximum of ``heap[row]`` with ``value`` and restore heap order."""
    size = heap.shape[1]
    pos = 0
    while True:
        child = 2 * pos + 1
        if child >= size:
            break
        right = child + 1
        if right < size and heap[row, right] > heap[row, child]:
            child = right
        if heap[row, child] <= value:
            break
        heap[row, pos] = heap[row, child]
        pos = child
    heap[row, pos] = value


@njit(cache=True)
def _offer(heap: np.ndarray, row: int, value: float) -> None:
    if value < heap[row, 0]:
        _heap_replace_top(heap, row, value)


@njit(cache=True)
def _drain(heap: np.ndarray, k: int) -> np.ndarray:
    # Slot k + 1 only absorbs the largest candidate; the k below it are the answer.
    n = heap.shape[0]
    out = np.empty((n, k), dtype=np.float64)
    for i in range(n):
        ordered = np.sort(heap[i])
        out[i, :] = ordered[:k]
    return out


###############################################################################
# Search kernels
###############################################################################


@njit(cache=True)
def _nn1_brute_kernel(x: np.ndarray, y: np.ndarray, toroidal: bool, xmax: float, ymax: float) -> np.ndarray:
    n = x.shape[0]
    nearest = np.full(n, SENTINEL_DISTANCE, dtype=np.float64)
    for i in range(n - 1):
        for j in range(i + 1, n):
            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[j], y[j])
            if d < nearest[i]:
                nearest[i] = d
            if d < nearest[j]:
                nearest[j] = d
    return nearest.reshape((n, 1))


@njit(cache=True)
def _knn_brute_kernel(x: np.ndarray, y: np.ndarray, k: int, toroidal: bool, xmax: float, ymax: float) -> np.ndarray:
    n = x.shape[0]
    heap = np.full((n, k + 1), SENTINEL_DISTANCE, dtype=np.float64)
    for i in range(n - 1):
        for j in range(i + 1, n):
            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[j], y[j])
            _offer(heap, i, d)
            _offer(heap, j, d)
    return _drain(heap, k)


@njit(cache=True, parallel=True)
def _nn1_parallel_kernel(x: np.ndarray, y: np.ndarray, toroidal: bool, xmax: float, ymax: float) -> np.ndarray:
    n = x.shape[0]
    nearest = np.full(n, SENTINEL_DISTANCE, dtype=np.float64)
    for i in prange(n):
        best = SENTINEL_DISTANCE
        for j in range(n):
            if j == i:
                continue
            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[j], y[j])
            if d < best:
                best = d
        nearest[i] = best
    return nearest.reshape((n, 1))


@njit(cache=True, parallel=True)
def _knn_parallel_kernel(x: np.ndarray, y: np.ndarray, k: int, toroidal: bool, xmax: float, ymax: float) -> np.ndarray:
    n = x.shape[0]
    heap = np.full((n, k + 1), SENTINEL_DISTANCE, dtype=np.float64)
    for i in prange(n):
        for j in range(n):
            if j == i:
                continue
            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[j], y[j])
            _offer(heap, i, d)
    return _drain(heap, k)


@njit(cache=True)
def _knn_indexed_kernel(
    x: np.ndarray,
    y: np.ndarray,
    k: int,
    toroidal: bool,
    xmax: float,
    ymax: float,
    head: np.ndarray,
    link: np.ndarray,
    cell_w: float,
    cell_h: float,
) -> np.ndarray:
    n = x.shape[0]
    ny, nx = head.shape
    heap = np.full((n, k + 1), SENTINEL_DISTANCE, dtype=np.float64)
    cell_min = min(cell_w, cell_h)

    # On a torus each bucket is visited once through a fixed window of offsets.
    lox = -(nx // 2)
    hix = nx - 1 - nx // 2
    loy = -(ny // 2)
    hiy = ny - 1 - ny // 2

    for i in range(n):
        cx = bucket_coord(x[i], cell_w, nx, toroidal)
        cy = bucket_coord(y[i], cell_h, ny, toroidal)
        if not toroidal:
            lox = -cx
            hix = nx - 1 - cx
            loy = -cy
            hiy = ny - 1 - cy
        last_ring = max(max(-lox, hix), max(-loy, hiy))

        for ring in range(last_ring + 1):
            for dy in range(max(-ring, loy), min(ring, hiy) + 1):
                if dy == -ring or dy == ring:
                    step = 1
                else:
                    step = 2 * ring
                for dx in range(-ring, ring + 1, step):
                    if dx < lox or dx > hix:
                        continue
                    bx = cx + dx
                    by = cy + dy
                    if toroidal:
                        bx = bx % nx
                        by = by % ny
                    p = head[by, bx]
                    while p >= 0:
                        if p != i:
                            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[p], y[p])
                            _offer(heap, i, d)
                        p = link[p]
            # Points beyond this ring are at least ring * cell_min away.
            if heap[i, 0] <= ring * cell_min * (1.0 - 1e-9):
                break
    return _drain(heap, k)


@njit(cache=True)
def _nearest_target_kernel(x1: np.ndarray, y1: np.ndarray, x2: np.ndarray, y2: np.ndarray) -> np.ndarray:
    n1 = x1.shape[0]
    n2 = x2.shape[0]
    out = np.full(n1, SENTINEL_DISTANCE, dtype=np.float64)
    if n2 == 0:
        return out
    for i in range(n1):
        best = np.inf
        for j in range(n2):
            dx = x1[i] - x2[j]
            dy = y1[i] - y2[j]
            d_sq = dx * dx + dy * dy
            if d_sq < best:
                best = d_sq
        out[i] = math.sqrt(best)
    return out


@njit(cache=True, parallel=True)
def _nearest_target_parallel_kernel(x1: np.ndarray, y1: np.ndarray, x2: np.ndarray, y2: np.ndarray) -> np.ndarray:
    n1 = x1.shape[0]
    n2 = x2.shape[0]
    out = np.full(n1, SENTINEL_DISTANCE, dtype=np.float64)
    if n2 == 0:
        return out
    for i in prange(n1):
        best = np.inf
        for j in range(n2):
            dx = x1[i] - x2[j]
            dy = y1[i] - y2[j]
            d_sq = dx * dx + dy * dy
            if d_sq < best:
                best = d_sq
        out[i] = math.sqrt(best)
    return out


###############################################################################
# Public interface
###############################################################################


def _resolve_metric(xs: np.ndarray, ys: np.ndarray, extents) -> Tuple[bool, float, float]:
    if extents is None:
        return False, 1.0, 1.0
    if len(extents) != 2:
        raise DomainError("extents", "must be a pair (xmax, ymax)", f"got {extents!r}")
    xmax, ymax = validation.check_extents(extents[0], extents[1])
    # Wrapping assumes every point lies within one period of the torus.
    validation.check_inside(xs, ys, xmax, ymax)
    return True, xmax, ymax


def _indexed_search(xs, ys, k, toroidal, xmax, ymax) -> np.ndarray:
    if toroidal:
        width, height = xmax, ymax
    else:
        # Planar search indexes the bounding box anchored at the origin.
        if np.any(xs < 0.0) or np.any(ys < 0.0):
            raise DomainError("x, y", "planar indexed search requires non-negative coordinates")
        width = max(float(xs.max()), 1e-9)
        height = max(float(ys.max()), 1e-9)
    target = math.sqrt(BUCKET_OCCUPANCY * width * height / len(xs))
    index = BucketIndex.tiling(xs, ys, width, height, target, wrap=toroidal)
    logger.debug("indexed knn buckets=%s", index.shape)
    return _knn_indexed_kernel(
        xs, ys, k, toroidal, width, height, index.head, index.link, index.cell_width, index.cell_height
    )


def knn_distances(
    x,
    y,
    k: int = 1,
    extents=None,
    method: str = "brute",
    n_threads: Optional[int] = None,
    pad: bool = False,
) -> np.ndarray:
    """
    Distances from every point to its ``k`` nearest other points.

    Args:
        x, y: Point coordinates (same length).
        k: Neighbour count, at least 1.
        extents: ``(xmax, ymax)`` for toroidal distance; ``None`` for planar.
        method: ``"brute"``, ``"parallel"`` or ``"indexed"``.
        n_threads: Worker count for ``"parallel"`` (``None`` = all).
        pad: Allow ``k >= n``; missing neighbours read ``SENTINEL_DISTANCE``.

    Returns:
        ``(n, k)`` array, each row ascending.

    Raises:
        DomainError: Fewer than two points, ``k < 1``, ``k >= n`` without
            ``pad``, invalid extents, points outside the plot when extents
            are given or an unknown method.
    """
    xs, ys = validation.as_coords(x, y)
    validation.check_choice("method", method, KNN_METHODS)
    k = int(k)
    n = len(xs)
    if k < 1:
        raise DomainError("k", "must be at least 1", f"got {k}")
    if n < 2:
        raise DomainError("x", "at least two points are required", f"got {n}")
    if n <= k and not pad:
        raise DomainError("k", "must be smaller than the number of points", f"k={k}, n={n}")
    toroidal, xmax, ymax = _resolve_metric(xs, ys, extents)
    logger.debug("knn n=%d k=%d method=%s toroidal=%s", n, k, method, toroidal)

    if method == "brute":
        if k == 1:
            return _nn1_brute_kernel(xs, ys, toroidal, xmax, ymax)
        return _knn_brute_kernel(xs, ys, k, toroidal, xmax, ymax)
    if method == "parallel":
        with thread_scope(n_threads):
            if k == 1:
                return _nn1_parallel_kernel(xs, ys, toroidal, xmax, ymax)
            return _knn_parallel_kernel(xs, ys, k, toroidal, xmax, ymax)
    return _indexed_search(xs, ys, k, toroidal, xmax, ymax)


def kth_neighbor_distance(x, y, k: int = 1, extents=None, **kwargs) -> np.ndarray:
    """Distance from each point to its k-th nearest neighbour."""
    return knn_distances(x, y, k=k, extents=extents, **kwargs)[:, k - 1].copy()


def mean_neighbor_distance(x, y, k: int = 1, extents=None, **kwargs) -> np.ndarray:
    """Mean distance from each point to its k nearest neighbours."""
    return knn_distances(x, y, k=k, extents=extents, **kwargs).mean(axis=1)


def nearest_footprint_distance(
    x1,
    y1,
    x2,
    y2,
    parallel: bool = False,
    n_threads: Optional[int] = None,
) -> np.ndarray:
    """
    Planar distance from each querier ``(x1, y1)`` to the closest target ``(x2, y2)``.

    Targets may be empty, in which case every entry is ``SENTINEL_DISTANCE``.

    Raises:
        DomainError: No queriers or mismatched coordinate lengths.
    """
    qx, qy = validation.as_coords(x1, y1, names=("x1", "y1"))
    tx, ty = validation.as_coords(x2, y2, allow_empty=True, names=("x2", "y2"))
    if parallel:
        with thread_scope(n_threads):
            return _nearest_target_parallel_kernel(qx, qy, tx, ty)
    return _nearest_target_kernel(qx, qy, tx, ty)


__all__ = [
    "KNN_METHODS",
    "SENTINEL_DISTANCE",
    "knn_distances",
    "kth_neighbor_distance",
    "mean_neighbor_distance",
    "nearest_footprint_distance",
]
