"""
Clark-Evans aggregation index.

R = observed mean nearest-neighbour distance / expected distance under a
homogeneous Poisson process of the same intensity, ``0.5 * sqrt(area / n)``.
R ~ 1 for complete spatial randomness, R < 1 for clustering, R > 1 for
regular spacing. Nearest neighbours are found with toroidal edge correction.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from . import validation
from .errors import DomainError
from .neighbors import knn_distances

# |R - 1| below this reads as random in classify_pattern
PATTERN_TOLERANCE = 0.2


def expected_nn_distance(area: float, n: int) -> float:
    """Mean nearest-neighbour distance of a Poisson pattern with ``n`` points on ``area``."""
    area = validation.check_positive("area", area)
    if n < 1:
        raise DomainError("n", "must be at least 1", f"got {n}")
    return 0.5 * math.sqrt(area / n)


def clark_evans_index(
    x,
    y,
    xmax: float,
    ymax: float,
    method: str = "brute",
    n_threads: Optional[int] = None,
) -> float:
    """
    Clark-Evans index of the points ``(x, y)`` on a ``xmax`` x ``ymax`` torus.

    Raises:
        DomainError: Fewer than two points, non-positive extents or points
            outside the plot.
    """
    xs, ys = validation.as_coords(x, y)
    xmax, ymax = validation.check_extents(xmax, ymax)
    n = len(xs)
    if n < 2:
        raise DomainError("x", "the Clark-Evans index needs at least two points", f"got {n}")
    nearest = knn_distances(xs, ys, k=1, extents=(xmax, ymax), method=method, n_threads=n_threads)
    d_mean = float(nearest[:, 0].mean())
    return d_mean / expected_nn_distance(xmax * ymax, n)


def expected_index_table(plot_size: float, densities) -> dict:
    """
    Expected Poisson nearest-neighbour distance for a range of stand densities.

    Args:
        plot_size: Side of a square plot (m).
        densities: Stems per hectare.

    Returns:
        ``{"density": ndarray, "expected_distance": ndarray}``; entries whose
        stem count rounds below two are NaN.
    """
    plot_size = validation.check_positive("plot_size", plot_size)
    dens = validation.as_array(densities, "densities")
    area = plot_size * plot_size
    counts = np.round(dens * area / 10_000.0)
    expected = np.full(dens.shape, np.nan)
    ok = counts >= 2
    expected[ok] = 0.5 * np.sqrt(area / counts[ok])
    return {"density": dens, "expected_distance": expected}


def classify_pattern(index: float, tolerance: float = PATTERN_TOLERANCE) -> str:
    if index < 1.0 - tolerance:
        return "clustered"
    if index > 1.0 + tolerance:
        return "regular"
    return "random"


__all__ = [
    "classify_pattern",
    "clark_evans_index",
    "expected_index_table",
    "expected_nn_distance",
]
