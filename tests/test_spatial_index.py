"""
Verification tests for the bucket spatial index.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import BucketIndex, DomainError


def test_bucket_linked_list():
    """Points in the same bucket are chained, most recent first."""
    x = np.array([1.0, 6.0, 1.0, 2.0])
    y = np.array([1.0, 1.0, 6.0, 2.0])
    index = BucketIndex.build(x, y, 10.0, 10.0, 5.0)

    assert index.shape == (2, 2)
    assert index.head[0, 0] == 3, "Head should point to last added point"
    assert list(index.members(0, 0)) == [3, 0]
    assert list(index.members(1, 0)) == [1]
    assert list(index.members(0, 1)) == [2]
    assert len(index.members(1, 1)) == 0
    assert index.occupancy().sum() == 4


def test_bucket_count_rounds_up():
    index = BucketIndex.build([0.5], [0.5], 12.0, 7.0, 5.0)
    assert index.shape == (2, 3)


def test_points_outside_plot_are_clamped():
    index = BucketIndex.build([-3.0, 25.0], [4.0, 4.0], 10.0, 10.0, 5.0)
    assert index.bucket_of(-3.0, 4.0) == (0, 0)
    assert index.bucket_of(25.0, 4.0) == (1, 0)
    assert index.occupancy().sum() == 2


def test_query_is_superset_of_disc():
    """Every point within the query radius is among the candidates."""
    rng = np.random.default_rng(3)
    x = rng.uniform(0.0, 50.0, 400)
    y = rng.uniform(0.0, 50.0, 400)
    index = BucketIndex.build(x, y, 50.0, 50.0, 4.0)

    for qx, qy, radius in [(10.0, 10.0, 3.0), (0.0, 49.0, 6.5), (25.0, 25.0, 0.0), (48.0, 2.0, 9.0)]:
        candidates = set(index.query(qx, qy, radius).tolist())
        inside = set(np.flatnonzero(np.hypot(x - qx, y - qy) <= radius).tolist())
        assert inside <= candidates, f"query ({qx}, {qy}, r={radius}) missed points"


def test_tiling_matches_extents():
    """Tiling buckets divide the plot exactly."""
    index = BucketIndex.tiling([1.0, 9.0], [1.0, 19.0], 10.0, 20.0, 3.0)
    assert index.shape == (6, 3)
    assert index.cell_width * 3 == pytest.approx(10.0)
    assert index.cell_height * 6 == pytest.approx(20.0)


def test_tiling_wraps_on_torus():
    index = BucketIndex.tiling([-1.0], [5.0], 10.0, 10.0, 5.0, wrap=True)
    # x = -1 lies in the last column on a torus
    assert index.bucket_of(-1.0, 5.0) == (1, 1)
    assert index.head[1, 1] == 0


def test_empty_index_and_bad_arguments():
    index = BucketIndex.build([], [], 10.0, 10.0, 5.0)
    assert index.num_points == 0
    assert len(index.query(5.0, 5.0, 3.0)) == 0

    with pytest.raises(DomainError):
        index.query(5.0, 5.0, -1.0)
    with pytest.raises(DomainError):
        index.members(2, 0)
    with pytest.raises(DomainError):
        BucketIndex.build([1.0], [1.0], 10.0, 10.0, 0.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
