"""
Unit tests for the parallel projection engine.

These tests verify that:
1. Binning clamps coordinates into the grid (including zero-width axes)
2. Results do not depend on the worker count
3. Every level is processed once and the statistics add up
4. Masks and cancellation behave as documented
5. projection() builds sum, surface-density and weighted-mean maps

"""

import threading

import numpy as np
import pytest

from drishti.errors import MaskLengthMismatchError, ProjectionCancelled
from drishti.projection import ParallelProjectionEngine, estimate_projection_speedup, projection
from drishti.variables import getvar

EDGES_2x2 = (np.array([0.0, 0.5, 1.0]), np.array([0.0, 0.5, 1.0]))


# ──────────────────────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────────────────────

def test_six_cell_scenario(six_cells):
    """Masses 1..6 on a 2x2 grid sum to 21; masking the last three leaves 6."""
    engine = ParallelProjectionEngine(workers=2)
    x = getvar(six_cells, "x")
    y = getvar(six_cells, "y")
    mass = six_cells["mass"]

    out = engine.project(x, y, np.ones(6), {"mass": mass}, six_cells["level"], EDGES_2x2)
    assert out["mass"].shape == (2, 2)
    assert out["mass"].sum() == pytest.approx(21.0)

    gate = np.array([1, 1, 1, 0, 0, 0], dtype=float)
    out = engine.project(x, y, gate, {"mass": mass}, six_cells["level"], EDGES_2x2)
    assert out["mass"].sum() == pytest.approx(6.0)


def test_out_of_range_coordinates_clamped():
    engine = ParallelProjectionEngine(workers=1)
    out = engine.project(
        np.array([-1.0, 5.0]), np.array([0.25, 0.75]), np.ones(2), {"v": np.array([1.0, 2.0])}, np.zeros(2), EDGES_2x2
    )
    np.testing.assert_array_equal(out["v"], [[1.0, 0.0], [0.0, 2.0]])


def test_zero_width_axis_collapses_to_first_bin():
    engine = ParallelProjectionEngine(workers=2)
    edges = (np.array([0.5, 0.5]), np.array([0.0, 0.5, 1.0]))
    out = engine.project(
        np.array([0.5, 0.5, 0.5]), np.array([0.1, 0.6, 0.9]), np.ones(3), {"v": np.ones(3)}, np.array([1, 2, 3]), edges
    )
    np.testing.assert_array_equal(out["v"], [[1.0, 2.0]])


def test_worker_count_does_not_change_result(amr_table):
    x = getvar(amr_table, "x")
    y = getvar(amr_table, "y")
    w = getvar(amr_table, "mass")
    data = {"rho": amr_table["rho"], "x": x}
    edges = (np.linspace(0, 1, 17), np.linspace(0, 1, 9))

    serial = ParallelProjectionEngine(workers=1).project(x, y, w, data, amr_table["level"], edges)
    parallel = ParallelProjectionEngine(workers=8).project(x, y, w, data, amr_table["level"], edges)
    for name in data:
        np.testing.assert_allclose(parallel[name], serial[name], rtol=1e-9)


def test_stats(amr_table):
    engine = ParallelProjectionEngine(workers=4)
    x = getvar(amr_table, "x")
    engine.project(x, x, np.ones(len(x)), {"a": x, "b": x}, amr_table["level"], EDGES_2x2)

    assert engine.stats["levels_processed"] == 2
    assert engine.stats["cells_processed"] == amr_table.nrows
    assert engine.stats["variables_processed"] == 2
    assert engine.stats["threads_used"] == 4
    assert engine.stats["last_projection_time"] >= 0.0


def test_more_workers_than_levels_steal_or_idle(six_cells):
    engine = ParallelProjectionEngine(workers=8)
    x = getvar(six_cells, "x")
    engine.project(x, x, np.ones(6), {"m": six_cells["mass"]}, six_cells["level"], EDGES_2x2)
    assert engine.stats["levels_processed"] == 2


def test_cancelled_projection_raises(amr_table):
    cancel = threading.Event()
    cancel.set()
    x = getvar(amr_table, "x")
    with pytest.raises(ProjectionCancelled):
        ParallelProjectionEngine(workers=2).project(
            x, x, np.ones(len(x)), {"a": x}, amr_table["level"], EDGES_2x2, cancel=cancel
        )


def test_length_mismatch_rejected():
    with pytest.raises(ValueError):
        ParallelProjectionEngine(workers=1).project(
            np.zeros(3), np.zeros(2), np.ones(3), {"a": np.zeros(3)}, np.zeros(3), EDGES_2x2
        )


def test_workers_from_environment(monkeypatch):
    monkeypatch.setenv("DRISHTI_WORKERS", "3")
    assert ParallelProjectionEngine().workers == 3
    assert ParallelProjectionEngine(workers=5).workers == 5

    monkeypatch.setenv("DRISHTI_WORKERS", "many")
    assert ParallelProjectionEngine().workers >= 1


def test_estimate_projection_speedup():
    assert estimate_projection_speedup(1_000_000, 8, 1, 4) == pytest.approx(4.32)
    # a single level cannot be split
    assert estimate_projection_speedup(100, 1, 1, 8) == pytest.approx(0.5)


# ──────────────────────────────────────────────────────────────
# projection()
# ──────────────────────────────────────────────────────────────

def test_projection_mass_and_mask(six_cells):
    maps = projection(six_cells, "mass", res=2, engine=ParallelProjectionEngine(workers=3))
    assert maps.maps["mass"].sum() == pytest.approx(21.0)
    assert maps.maps_mode["mass"] == "sum"
    assert maps.maps_weight["mass"] is None

    masked = projection(six_cells, "mass", res=2, mask=[1, 1, 1, 0, 0, 0])
    assert masked.maps["mass"].sum() == pytest.approx(6.0)


def test_projection_accepts_numpy_resolution(six_cells):
    maps = projection(six_cells, "mass", res=np.int64(2))
    assert maps.maps["mass"].shape == (2, 2)
    assert maps.maps["mass"].sum() == pytest.approx(21.0)

    pair = projection(six_cells, "mass", res=np.array([3, 2]))
    assert pair.maps["mass"].shape == (3, 2)


def test_projection_mask_length(six_cells):
    with pytest.raises(MaskLengthMismatchError):
        projection(six_cells, "mass", res=2, mask=[1, 0])


def test_projection_weighted_mean_and_sd(amr_table):
    maps = projection(amr_table, ["rho", "sd", "mass"], units=["standard", "Msol_pc2", "Msol"], res=4)

    np.testing.assert_allclose(maps.maps["rho"], 1.0)
    assert maps.maps_mode["rho"] == "mean"
    assert maps.maps_weight["rho"] == ("mass", "Msol")
    assert list(maps.maps) == ["rho", "sd", "mass"]

    assert maps.pixsize == pytest.approx((0.25, 0.25))
    assert maps.maps["mass"].sum() == pytest.approx(1.0)
    # unit box of rho = 1: every column holds mass 1 per unit area
    np.testing.assert_allclose(maps.maps["sd"], 1.0)
    np.testing.assert_allclose(maps.weight_map.sum(), 1.0)


def test_projection_direction_and_subrange(amr_table):
    maps = projection(amr_table, "mass", res=(5, 2), direction="x", yrange=(0.0, 0.5), zrange=(0.25, 1.0))
    assert maps.maps["mass"].shape == (5, 2)
    assert maps.extent == pytest.approx((0.0, 0.5, 0.25, 1.0))
    assert maps.direction == "x"

    y = getvar(amr_table, "y")
    z = getvar(amr_table, "z")
    inside = (y <= 0.5) & (z >= 0.25)
    assert maps.maps["mass"].sum() == pytest.approx(getvar(amr_table, "mass")[inside].sum())


def test_projection_empty_pixels_are_zero(six_cells):
    maps = projection(six_cells, "rho", res=8)
    assert np.count_nonzero(maps.maps["rho"]) <= 6
    assert set(np.unique(maps.maps["rho"])) <= {0.0, 1.0}


def test_projection_invalid_direction(six_cells):
    with pytest.raises(ValueError):
        projection(six_cells, "mass", direction="r")
