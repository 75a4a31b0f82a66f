"""
Uniform bucket index over a rectangular plot.

Points are chained into per-bucket singly linked lists stored in two arrays
(cell lists): ``head[by, bx]`` holds the most recently inserted point of a
bucket and ``link[i]`` the next point after ``i``; ``-1`` terminates a chain.
The arrays are plain numpy so the numba kernels in :mod:`canopy` and
:mod:`neighbors` traverse them directly.

The index only prunes candidates. Callers still apply the exact distance
test, so a coarse index costs time, never correctness.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numba import njit

from . import validation
from .errors import DomainError
from .log import get_logger

logger = get_logger(__name__)

###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def bucket_coord(v: float, cell: float, n: int, wrap: bool) -> int:
    """Bucket of coordinate ``v``; wrapped modulo ``n`` on a torus, clamped otherwise."""
    b = int(math.floor(v / cell))
    if wrap:
        b = b % n
    elif b < 0:
        b = 0
    elif b >= n:
        b = n - 1
    return b


@njit(cache=True)
def _link_point(idx: int, bx: int, by: int, head: np.ndarray, link: np.ndarray) -> None:
    link[idx] = head[by, bx]
    head[by, bx] = idx


@njit(cache=True)
def _build_kernel(
    x: np.ndarray,
    y: np.ndarray,
    cell_w: float,
    cell_h: float,
    nx: int,
    ny: int,
    wrap: bool,
) -> Tuple[np.ndarray, np.ndarray]:
    n = x.shape[0]
    head = np.full((ny, nx), -1, dtype=np.int32)
    link = np.full(n, -1, dtype=np.int32)
    for i in range(n):
        bx = bucket_coord(x[i], cell_w, nx, wrap)
        by = bucket_coord(y[i], cell_h, ny, wrap)
        _link_point(i, bx, by, head, link)
    return head, link


@njit(cache=True)
def _gather_kernel(
    head: np.ndarray,
    link: np.ndarray,
    cx: int,
    cy: int,
    rx: int,
    ry: int,
) -> np.ndarray:
    ny, nx = head.shape
    buf = np.empty(link.shape[0], dtype=np.int64)
    count = 0
    for by in range(max(0, cy - ry), min(ny, cy + ry + 1)):
        for bx in range(max(0, cx - rx), min(nx, cx + rx + 1)):
            p = head[by, bx]
            while p >= 0:
                buf[count] = p
                count += 1
                p = link[p]
    return buf[:count].copy()


@njit(cache=True)
def _occupancy_kernel(head: np.ndarray, link: np.ndarray) -> np.ndarray:
    ny, nx = head.shape
    counts = np.zeros((ny, nx), dtype=np.int64)
    for by in range(ny):
        for bx in range(nx):
            p = head[by, bx]
            while p >= 0:
                counts[by, bx] += 1
                p = link[p]
    return counts


###############################################################################
# Index object
###############################################################################


@dataclass
class BucketIndex:
    """Read-only bucket index; rebuilt on every top-level call, never cached."""

    cell_width: float
    cell_height: float
    head: np.ndarray
    link: np.ndarray
    wrap: bool = False

    @property
    def shape(self) -> Tuple[int, int]:
        return self.head.shape

    @property
    def num_points(self) -> int:
        return int(self.link.shape[0])

    @classmethod
    def build(cls, x, y, width: float, height: float, cell_size: float) -> "BucketIndex":
        """
        Index points on a ``width`` x ``height`` plot with square buckets.

        The grid has ``ceil(extent / cell_size)`` buckets per axis, so the last
        row and column may extend past the plot. Points outside the plot are
        clamped into the border buckets.
        """
        xs, ys = validation.as_coords(x, y, allow_empty=True)
        width = validation.check_positive("width", width)
        height = validation.check_positive("height", height)
        cell_size = validation.check_positive("cell_size", cell_size)
        nx = max(1, int(math.ceil(width / cell_size)))
        ny = max(1, int(math.ceil(height / cell_size)))
        head, link = _build_kernel(xs, ys, cell_size, cell_size, nx, ny, False)
        logger.debug("bucket index %dx%d, cell=%.3f, points=%d", nx, ny, cell_size, len(xs))
        return cls(cell_width=cell_size, cell_height=cell_size, head=head, link=link)

    @classmethod
    def tiling(cls, x, y, width: float, height: float, target_size: float, *, wrap: bool = False) -> "BucketIndex":
        """
        Index with buckets that tile the plot exactly.

        Each axis gets ``max(1, floor(extent / target_size))`` buckets, so
        bucket edges coincide with the plot edges and wrapped bucket offsets
        give exact distance bounds on a torus.
        """
        xs, ys = validation.as_coords(x, y, allow_empty=True)
        width = validation.check_positive("width", width)
        height = validation.check_positive("height", height)
        target_size = validation.check_positive("target_size", target_size)
        nx = max(1, int(math.floor(width / target_size)))
        ny = max(1, int(math.floor(height / target_size)))
        cell_w = width / nx
        cell_h = height / ny
        head, link = _build_kernel(xs, ys, cell_w, cell_h, nx, ny, wrap)
        logger.debug(
            "tiling index %dx%d, cell=%.3fx%.3f, wrap=%s, points=%d",
            nx, ny, cell_w, cell_h, wrap, len(xs),
        )
        return cls(cell_width=cell_w, cell_height=cell_h, head=head, link=link, wrap=wrap)

    def bucket_of(self, x: float, y: float) -> Tuple[int, int]:
        ny, nx = self.head.shape
        return (
            bucket_coord(float(x), self.cell_width, nx, self.wrap),
            bucket_coord(float(y), self.cell_height, ny, self.wrap),
        )

    def members(self, bx: int, by: int) -> np.ndarray:
        """Indices stored in one bucket, most recently inserted first."""
        ny, nx = self.head.shape
        if not (0 <= bx < nx and 0 <= by < ny):
            raise DomainError("bucket", f"must lie within {nx}x{ny}", f"got ({bx}, {by})")
        return _gather_kernel(self.head, self.link, bx, by, 0, 0)

    def query(self, x: float, y: float, radius: float) -> np.ndarray:
        """
        Candidate indices for a disc of ``radius`` around ``(x, y)``.

        Scans ``ceil(radius / cell)`` buckets either side of the query bucket
        (clamped to the grid, no wrap-around). The result is a superset of the
        points within ``radius``.
        """
        if radius < 0.0:
            raise DomainError("radius", "must be non-negative", f"got {radius}")
        ny, nx = self.head.shape
        cx = bucket_coord(float(x), self.cell_width, nx, False)
        cy = bucket_coord(float(y), self.cell_height, ny, False)
        rx = int(math.ceil(radius / self.cell_width))
        ry = int(math.ceil(radius / self.cell_height))
        return _gather_kernel(self.head, self.link, cx, cy, rx, ry)

    def occupancy(self) -> np.ndarray:
        """Points per bucket, shaped like ``head``."""
        return _occupancy_kernel(self.head, self.link)


__all__ = ["BucketIndex", "bucket_coord"]
