"""
Argument checking shared by the public entry points.

Every helper either returns a clean ``float64`` value/array ready for the
numba kernels or raises :class:`DomainError` naming the argument at fault.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .errors import DomainError


def as_array(values, name: str, *, allow_empty: bool = False) -> np.ndarray:
    """Convert ``values`` to a contiguous 1-D float64 array of finite numbers."""
    try:
        arr = np.ascontiguousarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise DomainError(name, "must be a sequence of real numbers", str(exc)) from exc
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise DomainError(name, "must be one-dimensional", f"got shape {arr.shape}")
    if arr.size == 0 and not allow_empty:
        raise DomainError(name, "must not be empty")
    if not np.all(np.isfinite(arr)):
        raise DomainError(name, "must contain only finite values")
    return arr


def check_same_length(**arrays: np.ndarray) -> int:
    """Return the common length of ``arrays`` or raise naming the first mismatch."""
    names = list(arrays)
    expected = len(arrays[names[0]])
    for name in names[1:]:
        if len(arrays[name]) != expected:
            raise DomainError(
                name,
                f"must have the same length as {names[0]}",
                f"{len(arrays[name])} != {expected}",
            )
    return expected


def as_coords(x, y, *, allow_empty: bool = False, names: Tuple[str, str] = ("x", "y")) -> Tuple[np.ndarray, np.ndarray]:
    xs = as_array(x, names[0], allow_empty=allow_empty)
    ys = as_array(y, names[1], allow_empty=allow_empty)
    check_same_length(**{names[0]: xs, names[1]: ys})
    return xs, ys


def as_radius(radius, n: int, *, allow_empty: bool = False) -> np.ndarray:
    r = as_array(radius, "radius", allow_empty=allow_empty)
    if len(r) != n:
        raise DomainError("radius", "must have the same length as x", f"{len(r)} != {n}")
    if np.any(r < 0.0):
        raise DomainError("radius", "must be non-negative", f"min={float(r.min())}")
    return r


def check_positive(name: str, value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise DomainError(name, "must be a real number", str(exc)) from exc
    if not math.isfinite(v) or v <= 0.0:
        raise DomainError(name, "must be positive and finite", f"got {value}")
    return v


def check_extents(xmax, ymax) -> Tuple[float, float]:
    return check_positive("xmax", xmax), check_positive("ymax", ymax)


def check_inside(x: np.ndarray, y: np.ndarray, xmax: float, ymax: float) -> None:
    """Require every point to lie in the closed plot rectangle."""
    if np.any(x < 0.0) or np.any(x > xmax):
        raise DomainError("x", f"must lie within [0, {xmax}]")
    if np.any(y < 0.0) or np.any(y > ymax):
        raise DomainError("y", f"must lie within [0, {ymax}]")


def check_choice(name: str, value: str, choices) -> str:
    if value not in choices:
        raise DomainError(name, f"must be one of {sorted(choices)}", f"got {value!r}")
    return value
