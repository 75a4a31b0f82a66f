from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from . import utils
from .canopy import COVER_METHODS, DEFAULT_GRID_RES, INDEX_THRESHOLD
from .neighbors import KNN_METHODS


@dataclass
class MetricsConfig:
    plot_size: float = 100.0
    grid_res: float = DEFAULT_GRID_RES
    cover_method: str = "auto"
    knn_method: str = "brute"
    overlap_parallel: bool = False
    n_threads: Optional[int] = None
    index_threshold: int = INDEX_THRESHOLD
    # Floor for relative-error denominators in stand_energy
    relative_floor: float = 0.1

    def __post_init__(self) -> None:
        if self.plot_size <= 0:
            raise ValueError(f"plot_size must be positive, got {self.plot_size}")
        if self.grid_res <= 0:
            raise ValueError(f"grid_res must be positive, got {self.grid_res}")
        if self.cover_method not in COVER_METHODS:
            raise ValueError(f"Unknown cover_method '{self.cover_method}'")
        if self.knn_method not in KNN_METHODS:
            raise ValueError(f"Unknown knn_method '{self.knn_method}'")
        if self.relative_floor <= 0:
            raise ValueError("relative_floor must be positive")

    def cover_method_for(self, n_trees: int) -> str:
        """Resolve ``"auto"`` against this config's index threshold."""
        if self.cover_method != "auto":
            return self.cover_method
        return "direct" if n_trees < self.index_threshold else "hybrid"

    @classmethod
    def from_dict(cls, params: Dict[str, Any] | None = None) -> "MetricsConfig":
        params = dict(params or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**params)


def load_config(path: str | os.PathLike[str]) -> MetricsConfig:
    """
    Read a MetricsConfig from JSON or TOML.

    A TOML file may keep the values under a ``[metrics]`` table.
    """
    params = utils.load_params(path)
    if isinstance(params.get("metrics"), dict):
        params = params["metrics"]
    return MetricsConfig.from_dict(params)
