"""
Total pairwise crown overlap area.

Each pair of crowns contributes the area of the intersection of their discs
(planar geometry, no clipping to the plot), counted once per pair.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from numba import njit, prange

from . import validation
from .parallel import thread_scope


@njit(cache=True)
def _clamp_unit(v: float) -> float:
    if v < -1.0:
        return -1.0
    if v > 1.0:
        return 1.0
    return v


@njit(cache=True)
def lens_area(d: float, r1: float, r2: float) -> float:
    """
    Intersection area of two discs of radii ``r1``, ``r2`` whose centres are ``d`` apart.

    Returns 0 for disjoint or touching discs and the smaller disc's area when
    one contains the other (including ``d == 0``).
    """
    if r1 + r2 <= d:
        return 0.0
    if d <= abs(r1 - r2):
        r_min = min(r1, r2)
        return math.pi * r_min * r_min
    d_sq = d * d
    r1_sq = r1 * r1
    r2_sq = r2 * r2
    angle1 = math.acos(_clamp_unit((d_sq + r1_sq - r2_sq) / (2.0 * d * r1)))
    angle2 = math.acos(_clamp_unit((d_sq + r2_sq - r1_sq) / (2.0 * d * r2)))
    kite = (r1 + r2 + d) * (-d + r1 + r2) * (d - r1 + r2) * (d + r1 - r2)
    return r1_sq * angle1 + r2_sq * angle2 - 0.5 * math.sqrt(max(kite, 0.0))


@njit(cache=True)
def _overlap_kernel(x: np.ndarray, y: np.ndarray, radius: np.ndarray) -> float:
    n = x.shape[0]
    total = 0.0
    for i in range(n - 1):
        for j in range(i + 1, n):
            dx = x[i] - x[j]
            dy = y[i] - y[j]
            total += lens_area(math.sqrt(dx * dx + dy * dy), radius[i], radius[j])
    return total


@njit(cache=True, parallel=True)
def _overlap_parallel_kernel(x: np.ndarray, y: np.ndarray, radius: np.ndarray) -> float:
    n = x.shape[0]
    partial = np.zeros(n, dtype=np.float64)
    # Worker owning i sums pairs (i, j > i) into partial[i] only.
    for i in prange(n):
        acc = 0.0
        for j in range(i + 1, n):
            dx = x[i] - x[j]
            dy = y[i] - y[j]
            acc += lens_area(math.sqrt(dx * dx + dy * dy), radius[i], radius[j])
        partial[i] = acc
    return partial.sum()


@njit(cache=True)
def _overlap_per_crown_kernel(x: np.ndarray, y: np.ndarray, radius: np.ndarray) -> np.ndarray:
    n = x.shape[0]
    out = np.zeros(n, dtype=np.float64)
    for i in range(n - 1):
        for j in range(i + 1, n):
            dx = x[i] - x[j]
            dy = y[i] - y[j]
            a = lens_area(math.sqrt(dx * dx + dy * dy), radius[i], radius[j])
            out[i] += a
            out[j] += a
    return out


def crown_overlap(x, y, radius, parallel: bool = False, n_threads: Optional[int] = None) -> float:
    """
    Sum of overlap areas over all crown pairs ``i < j``.

    The parallel variant may differ from the serial sum in the last bits
    because the partial sums are added in a different order.

    Raises:
        DomainError: Empty input, mismatched lengths or negative radii.
    """
    xs, ys = validation.as_coords(x, y)
    rs = validation.as_radius(radius, len(xs))
    if parallel:
        with thread_scope(n_threads):
            return float(_overlap_parallel_kernel(xs, ys, rs))
    return float(_overlap_kernel(xs, ys, rs))


def overlap_per_crown(x, y, radius) -> np.ndarray:
    """Overlap area shared by each crown with all others; sums to twice the total."""
    xs, ys = validation.as_coords(x, y)
    rs = validation.as_radius(radius, len(xs))
    return _overlap_per_crown_kernel(xs, ys, rs)


__all__ = ["crown_overlap", "lens_area", "overlap_per_crown"]
