"""
Tests for the stand metric bundle, configuration and I/O helpers.
"""

import json
import logging
import sys
from pathlib import Path

import numba
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stand_pattern import (
    DomainError,
    MetricsConfig,
    StandMetrics,
    compute_stand_metrics,
    load_config,
    stand_energy,
)
from stand_pattern import utils
from stand_pattern.log import LOGGER_NAME, set_debug
from stand_pattern.parallel import resolve_threads, thread_scope


@pytest.fixture
def lattice():
    """10 x 10 lattice with 10 m spacing and touching 5 m crowns on a 100 m plot."""
    gx, gy = np.meshgrid(np.arange(5.0, 100.0, 10.0), np.arange(5.0, 100.0, 10.0))
    x, y = gx.ravel(), gy.ravel()
    return x, y, np.full(x.shape, 5.0)


def test_lattice_metrics(lattice):
    x, y, radius = lattice
    metrics = compute_stand_metrics(x, y, radius)
    assert metrics.n_trees == 100
    assert metrics.density_ha == pytest.approx(100.0)
    assert metrics.clark_evans == pytest.approx(2.0)
    assert metrics.crown_overlap == 0.0
    assert metrics.mean_crown_radius == 5.0
    assert 0.7 < metrics.canopy_cover < 0.8


def test_config_variants_agree(lattice):
    x, y, radius = lattice
    base = compute_stand_metrics(x, y, radius)
    cfg = MetricsConfig(cover_method="hybrid", knn_method="indexed", overlap_parallel=True, n_threads=2)
    other = compute_stand_metrics(x, y, radius, cfg)
    assert other.clark_evans == base.clark_evans
    assert other.canopy_cover == base.canopy_cover
    assert other.crown_overlap == pytest.approx(base.crown_overlap)


def test_metrics_as_dict(lattice):
    metrics = compute_stand_metrics(*lattice)
    data = metrics.as_dict()
    assert set(data) == {
        "n_trees",
        "density_ha",
        "clark_evans",
        "canopy_cover",
        "crown_overlap",
        "mean_crown_radius",
    }


def test_stand_energy():
    metrics = {"clark_evans": 1.2, "canopy_cover": 0.3, "crown_overlap": 50.0}
    targets = {"clark_evans": 1.0, "canopy_cover": 0.05}
    weights = {"clark_evans": 1.0, "canopy_cover": 2.0}
    # 0.2^2 + 2 * (0.25 / 0.1)^2, the cover target sits below the relative floor
    assert stand_energy(metrics, targets, weights) == pytest.approx(12.54)
    assert stand_energy(metrics, targets, {}) == 0.0


def test_stand_energy_from_metrics_object():
    metrics = StandMetrics(
        n_trees=10,
        density_ha=250.0,
        clark_evans=1.0,
        canopy_cover=0.4,
        crown_overlap=0.0,
        mean_crown_radius=2.0,
    )
    assert stand_energy(metrics, {"density_ha": 200.0}, {"density_ha": 1.0}) == pytest.approx(0.0625)


def test_stand_energy_errors():
    with pytest.raises(DomainError) as excinfo:
        stand_energy({"clark_evans": 1.0}, {"basal_area": 1.0}, {"basal_area": 1.0})
    assert excinfo.value.argument == "weights"
    with pytest.raises(DomainError) as excinfo:
        stand_energy({"clark_evans": 1.0}, {}, {"clark_evans": 1.0})
    assert excinfo.value.argument == "targets"


def test_compute_stand_metrics_errors():
    with pytest.raises(DomainError):
        compute_stand_metrics([1.0], [1.0], [1.0])
    with pytest.raises(DomainError):
        compute_stand_metrics([1.0, 2.0], [1.0, 2.0], [1.0, -2.0])


def test_config_defaults_and_auto():
    cfg = MetricsConfig()
    assert cfg.plot_size == 100.0
    assert cfg.cover_method_for(10) == "direct"
    assert cfg.cover_method_for(cfg.index_threshold) == "hybrid"
    assert MetricsConfig(cover_method="parallel").cover_method_for(10) == "parallel"


def test_config_validation():
    with pytest.raises(ValueError):
        MetricsConfig(plot_size=0.0)
    with pytest.raises(ValueError):
        MetricsConfig(cover_method="voronoi")
    with pytest.raises(ValueError):
        MetricsConfig.from_dict({"plot_sizee": 10.0})


def test_load_config_json(tmp_path):
    path = tmp_path / "metrics.json"
    path.write_text(json.dumps({"plot_size": 50.0, "grid_res": 0.25}))
    cfg = load_config(path)
    assert cfg.plot_size == 50.0
    assert cfg.grid_res == 0.25


def test_load_config_toml_table(tmp_path):
    path = tmp_path / "metrics.toml"
    path.write_text('[metrics]\nplot_size = 40.0\ncover_method = "indexed"\nn_threads = 2\n')
    cfg = load_config(path)
    assert cfg.plot_size == 40.0
    assert cfg.cover_method == "indexed"
    assert cfg.n_threads == 2


def test_npz_round_trip(tmp_path):
    stand = utils.StandData(x=np.array([1.0, 2.0]), y=np.array([3.0, 4.0]), radius=np.array([0.5, 1.5]))
    stand.ensure_meta()["seed"] = 3
    path = tmp_path / "out" / "stand.npz"
    utils.save_stand(path, stand)
    loaded = utils.load_stand(path)
    np.testing.assert_array_equal(loaded.x, stand.x)
    np.testing.assert_array_equal(loaded.radius, stand.radius)
    assert loaded.meta == {"seed": 3}
    assert loaded.num_trees == 2

    with pytest.raises(FileExistsError):
        utils.save_stand(path, stand, overwrite=False)


def test_csv_load(tmp_path):
    path = tmp_path / "stand.csv"
    path.write_text("x,y,radius\n1.0,2.0,0.5\n3.0,4.0,1.0\n")
    loaded = utils.load_stand(path)
    np.testing.assert_array_equal(loaded.y, [2.0, 4.0])
    np.testing.assert_array_equal(loaded.radius, [0.5, 1.0])

    bad = tmp_path / "bad.csv"
    bad.write_text("a,b\n1.0,2.0\n")
    with pytest.raises(ValueError):
        utils.load_stand(bad)


def test_unsupported_stand_format(tmp_path):
    with pytest.raises(ValueError):
        utils.load_stand(tmp_path / "stand.xlsx")


def test_set_debug():
    logger = logging.getLogger(LOGGER_NAME)
    set_debug(True)
    assert logger.level == logging.DEBUG
    set_debug(False)
    assert logger.level == logging.INFO


def test_thread_scope_restores_threads():
    before = numba.get_num_threads()
    with thread_scope(1) as used:
        assert used == 1
        assert numba.get_num_threads() == 1
    assert numba.get_num_threads() == before
    assert resolve_threads(None) == numba.config.NUMBA_NUM_THREADS
    assert resolve_threads(10_000) == numba.config.NUMBA_NUM_THREADS


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
