"""
Stand Pattern Library - spatial metrics for simulated forest stands

Pure numeric functions over tree coordinates and crown radii:
- clark_evans_index: aggregation index with toroidal nearest neighbours
- knn_distances: k-nearest-neighbour distances (brute, parallel, indexed)
- canopy_cover: rasterized crown cover (direct, indexed, parallel, hybrid)
- crown_overlap: exact pairwise crown intersection area
- energy / energy_components: squared-deviation objective terms
"""

from .errors import DomainError
from .distance import distance, pairwise_distances
from .spatial_index import BucketIndex
from .neighbors import (
    SENTINEL_DISTANCE,
    knn_distances,
    kth_neighbor_distance,
    mean_neighbor_distance,
    nearest_footprint_distance,
)
from .clark_evans import classify_pattern, clark_evans_index, expected_index_table, expected_nn_distance
from .canopy import canopy_cover, coverage_grid
from .overlap import crown_overlap, lens_area, overlap_per_crown
from .energy import energy, energy_components, nurse_distance_energy, squared_deviation
from .config import MetricsConfig, load_config
from .stand import StandMetrics, compute_stand_metrics, stand_energy
from . import utils

__all__ = [
    # Errors
    "DomainError",
    # Geometry
    "distance",
    "pairwise_distances",
    "BucketIndex",
    # Neighbours and pattern
    "SENTINEL_DISTANCE",
    "knn_distances",
    "kth_neighbor_distance",
    "mean_neighbor_distance",
    "nearest_footprint_distance",
    "clark_evans_index",
    "classify_pattern",
    "expected_index_table",
    "expected_nn_distance",
    # Crowns
    "canopy_cover",
    "coverage_grid",
    "crown_overlap",
    "lens_area",
    "overlap_per_crown",
    # Energy
    "energy",
    "energy_components",
    "nurse_distance_energy",
    "squared_deviation",
    # Stand bundle and configuration
    "MetricsConfig",
    "load_config",
    "StandMetrics",
    "compute_stand_metrics",
    "stand_energy",
    # Utilities
    "utils",
]
