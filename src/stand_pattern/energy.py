"""
Energy reducers that fold stand metrics into an optimization objective.

Energies are sums of (optionally weighted and scaled) squared deviations from
target values; lower is better.
"""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np

from . import validation
from .errors import DomainError
from .neighbors import nearest_footprint_distance


def squared_deviation(current: float, target: float) -> float:
    """``(current - target) ** 2`` for a single metric."""
    values = validation.as_array([current, target], "current, target")
    diff = values[0] - values[1]
    return float(diff * diff)


def _terms(values, targets, weights, scales) -> np.ndarray:
    v = validation.as_array(values, "values")
    t = validation.as_array(targets, "targets")
    validation.check_same_length(values=v, targets=t)
    diff = v - t
    if scales is not None:
        s = validation.as_array(scales, "scales")
        validation.check_same_length(values=v, scales=s)
        if np.any(s == 0.0):
            raise DomainError("scales", "must be non-zero")
        diff = diff / s
    terms = diff * diff
    if weights is not None:
        w = validation.as_array(weights, "weights")
        validation.check_same_length(values=v, weights=w)
        terms = w * terms
    return terms


def energy(values, targets, weights=None, scales=None) -> float:
    """
    ``sum(w * ((v - t) / s) ** 2)`` over parallel arrays.

    Args:
        values: Current metric values.
        targets: Target metric values.
        weights: Per-term weights (default 1).
        scales: Per-term normalisers turning deviations into relative errors
            (default 1).

    Raises:
        DomainError: Empty or mismatched arrays, non-finite entries or a zero
            scale.
    """
    return float(_terms(values, targets, weights, scales).sum())


def energy_components(values, targets, weights, component_ids) -> Dict[int, float]:
    """
    Weighted squared deviations summed per component id.

    Returns:
        ``{component_id: energy}`` in ascending id order.
    """
    terms = _terms(values, targets, weights, None)
    ids = np.asarray(component_ids)
    if ids.ndim != 1 or len(ids) != len(terms):
        raise DomainError("component_ids", "must have the same length as values", f"{ids.shape} vs {len(terms)}")
    try:
        as_int = ids.astype(np.int64)
    except (TypeError, ValueError) as exc:
        raise DomainError("component_ids", "must be integers", str(exc)) from exc
    if not np.array_equal(as_int, ids):
        raise DomainError("component_ids", "must be integers")
    ids = as_int
    components: Dict[int, float] = {}
    for comp_id in np.unique(ids):
        components[int(comp_id)] = float(terms[ids == comp_id].sum())
    return components


def nurse_distance_energy(qx, qy, tx, ty, target_distance: float, n_threads: Optional[int] = None) -> float:
    """
    Squared deviation of the mean querier-to-nearest-target distance from ``target_distance``.

    Models facilitation (e.g. pinyon establishing near juniper "nurse" trees).
    Returns 0.0 when either group is empty.

    Raises:
        DomainError: Mismatched or non-finite coordinates.
    """
    target_distance = float(target_distance)
    qx, qy = validation.as_coords(qx, qy, allow_empty=True, names=("qx", "qy"))
    tx, ty = validation.as_coords(tx, ty, allow_empty=True, names=("tx", "ty"))
    if len(qx) == 0 or len(tx) == 0:
        return 0.0
    dist = nearest_footprint_distance(qx, qy, tx, ty, parallel=n_threads is not None, n_threads=n_threads)
    return squared_deviation(float(dist.mean()), target_distance)


__all__ = [
    "energy",
    "energy_components",
    "nurse_distance_energy",
    "squared_deviation",
]
