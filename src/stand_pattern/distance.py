"""
Distance metrics on a rectangular plot.

Pattern statistics treat the plot as a torus (opposite edges adjacent,
Illian et al. 2008, p. 184); canopy cover and crown overlap treat it as a
bounded plane. Both kernels are compiled without ``fastmath`` so that every
caller evaluates bit-identical expressions.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit

from . import validation

###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def toroidal_distance(xmax: float, ymax: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance with each axis separation wrapped to ``min(|d|, extent - |d|)``."""
    dx = abs(x1 - x2)
    dy = abs(y1 - y2)
    dx = min(dx, xmax - dx)
    dy = min(dy, ymax - dy)
    return math.sqrt(dx * dx + dy * dy)


@njit(cache=True)
def planar_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    dx = x1 - x2
    dy = y1 - y2
    return math.sqrt(dx * dx + dy * dy)


@njit(cache=True)
def metric_distance(toroidal: bool, xmax: float, ymax: float, x1: float, y1: float, x2: float, y2: float) -> float:
    # Single dispatch point so brute, parallel and indexed searches agree exactly.
    if toroidal:
        return toroidal_distance(xmax, ymax, x1, y1, x2, y2)
    return planar_distance(x1, y1, x2, y2)


@njit(cache=True)
def _pairwise_kernel(x: np.ndarray, y: np.ndarray, toroidal: bool, xmax: float, ymax: float) -> np.ndarray:
    n = x.shape[0]
    out = np.zeros((n, n), dtype=np.float64)
    for i in range(n - 1):
        for j in range(i + 1, n):
            d = metric_distance(toroidal, xmax, ymax, x[i], y[i], x[j], y[j])
            out[i, j] = d
            out[j, i] = d
    return out


###############################################################################
# Public interface
###############################################################################


def distance(xmax, ymax, x1, y1, x2, y2, *, toroidal: bool = True) -> float:
    """
    Distance between two points of a plot with extents ``(xmax, ymax)``.

    Args:
        xmax, ymax: Plot extents; the wrap period on each axis.
        x1, y1, x2, y2: Point coordinates.
        toroidal: Wrap separations around the plot edges (default). With
            ``False`` the plain planar distance is returned and the extents
            are only validated.

    Raises:
        DomainError: Non-positive extents, non-finite coordinates or, for the
            toroidal metric, a point outside the plot.
    """
    xmax, ymax = validation.check_extents(xmax, ymax)
    coords = validation.as_array([x1, y1, x2, y2], "coordinates")
    if toroidal:
        validation.check_inside(coords[0::2], coords[1::2], xmax, ymax)
        return float(toroidal_distance(xmax, ymax, coords[0], coords[1], coords[2], coords[3]))
    return float(planar_distance(coords[0], coords[1], coords[2], coords[3]))


def pairwise_distances(x, y, extents=None) -> np.ndarray:
    """
    Dense symmetric ``(n, n)`` distance matrix with a zero diagonal.

    ``extents=(xmax, ymax)`` selects the toroidal metric, ``None`` the planar
    one. Memory grows as n**2; intended for small stands and checks.
    """
    xs, ys = validation.as_coords(x, y)
    if extents is None:
        return _pairwise_kernel(xs, ys, False, 1.0, 1.0)
    xmax, ymax = validation.check_extents(*extents)
    validation.check_inside(xs, ys, xmax, ymax)
    return _pairwise_kernel(xs, ys, True, xmax, ymax)


__all__ = [
    "distance",
    "metric_distance",
    "pairwise_distances",
    "planar_distance",
    "toroidal_distance",
]
