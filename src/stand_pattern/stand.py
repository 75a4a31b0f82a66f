"""
Stand-level metric bundle: every spatial metric of one square plot in a single
call, and the relative-error energy against a set of targets.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Mapping

import numpy as np

from . import validation
from .canopy import canopy_cover
from .clark_evans import clark_evans_index
from .config import MetricsConfig
from .energy import energy
from .errors import DomainError
from .log import get_logger
from .overlap import crown_overlap

logger = get_logger(__name__)

M2_PER_HA = 10_000.0


@dataclass
class StandMetrics:
    n_trees: int
    density_ha: float
    clark_evans: float
    canopy_cover: float
    crown_overlap: float
    mean_crown_radius: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_stand_metrics(x, y, radius, config: MetricsConfig | None = None) -> StandMetrics:
    """
    All spatial metrics of a stand on a square plot of side ``config.plot_size``.

    The Clark-Evans index uses toroidal edge correction; cover and overlap use
    planar geometry.
    """
    config = config or MetricsConfig()
    xs, ys = validation.as_coords(x, y)
    rs = validation.as_radius(radius, len(xs))
    n = len(xs)
    plot = config.plot_size

    metrics = StandMetrics(
        n_trees=n,
        density_ha=n / (plot * plot / M2_PER_HA),
        clark_evans=clark_evans_index(
            xs, ys, plot, plot, method=config.knn_method, n_threads=config.n_threads
        ),
        canopy_cover=canopy_cover(
            xs,
            ys,
            rs,
            plot,
            config.grid_res,
            method=config.cover_method_for(n),
            n_threads=config.n_threads,
        ),
        crown_overlap=crown_overlap(
            xs, ys, rs, parallel=config.overlap_parallel, n_threads=config.n_threads
        ),
        mean_crown_radius=float(rs.mean()),
    )
    logger.debug("stand metrics: %s", metrics)
    return metrics


def stand_energy(
    metrics: StandMetrics | Mapping[str, float],
    targets: Mapping[str, float],
    weights: Mapping[str, float],
    relative_floor: float = 0.1,
) -> float:
    """
    Weighted relative-error energy over named metrics.

    Each weighted metric contributes ``w * ((m - t) / max(|t|, relative_floor)) ** 2``.
    Metrics without a weight are ignored.

    Raises:
        DomainError: A weighted metric is missing from ``metrics`` or ``targets``.
    """
    values = metrics.as_dict() if isinstance(metrics, StandMetrics) else dict(metrics)
    names = sorted(weights)
    if not names:
        return 0.0
    for name in names:
        if name not in values:
            raise DomainError("weights", f"names unknown metric '{name}'")
        if name not in targets:
            raise DomainError("targets", f"missing target for '{name}'")
    target_arr = np.array([float(targets[name]) for name in names])
    scales = np.maximum(np.abs(target_arr), relative_floor)
    return energy(
        [float(values[name]) for name in names],
        target_arr,
        weights=[float(weights[name]) for name in names],
        scales=scales,
    )


__all__ = ["StandMetrics", "compute_stand_metrics", "stand_energy"]
