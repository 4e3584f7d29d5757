"""
Unit tests for reading RAMSES outputs and storing results.

These tests verify that:
1. Unit scales follow from the RAMSES unit constants
2. Projections and histograms round-trip through HDF5 with generator metadata
3. Real snapshots load into AMR tables (skipped when no outputs are present)

"""

from pathlib import Path

import numpy as np
import pytest

from drishti import __version__
from drishti.histogram import histogram2d
from drishti.io import MSOL, PC, create_scales, load_maps, read_hydro, read_info, save_maps
from drishti.projection import projection
from drishti.variables import getvar

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

RAMSES_OUTPUT_ROOT = Path("ramses_outputs/sedov_3d")

needs_ramses_data = pytest.mark.skipif(
    not (RAMSES_OUTPUT_ROOT / "output_00001").is_dir(),
    reason="RAMSES test outputs not available",
)


# ──────────────────────────────────────────────────────────────
# Unit scales
# ──────────────────────────────────────────────────────────────

def test_create_scales():
    sc = create_scales(unit_l=PC * 1e3, unit_d=MSOL / PC**3, unit_t=3.15576e13)
    assert sc["standard"] == 1.0
    assert sc["kpc"] == pytest.approx(1.0)
    assert sc["pc"] == pytest.approx(1e3)
    assert sc["Msol_pc3"] == pytest.approx(1.0)
    assert sc["Msol"] == pytest.approx(1e9)
    assert sc["Myr"] == pytest.approx(1.0)


# ──────────────────────────────────────────────────────────────
# HDF5 round trips
# ──────────────────────────────────────────────────────────────

def test_projection_round_trip(tmp_path, amr_table):
    maps = projection(amr_table, ["rho", "mass"], res=4)
    filename = save_maps(maps, str(tmp_path / "proj_00001.h5"))

    loaded = load_maps(filename)
    assert loaded["kind"] == "projection"
    assert list(loaded["maps"]) == ["rho", "mass"]
    np.testing.assert_allclose(loaded["maps"]["mass"], maps.maps["mass"])
    np.testing.assert_allclose(loaded["weight_map"], maps.weight_map)
    np.testing.assert_allclose(loaded["xedges"], maps.xedges)
    assert loaded["maps_mode"] == {"rho": "mean", "mass": "sum"}
    assert loaded["attrs"]["direction"] == "z"
    assert loaded["attrs"]["generator_version"] == __version__
    assert "generator_timestamp" in loaded["attrs"]


def test_histogram_round_trip(tmp_path, amr_table):
    h = histogram2d(amr_table, ("x", "standard"), ("rho", "standard"), nbins=(6, 3), weight=("mass", "Msol"))
    loaded = load_maps(save_maps(h, str(tmp_path / "hist.h5")))
    assert loaded["kind"] == "histogram"
    np.testing.assert_allclose(loaded["weights"], h.weights)
    assert loaded["attrs"]["closed"] == "left"
    assert loaded["attrs"]["weight"] == "mass,Msol"


def test_save_unknown_type(tmp_path):
    with pytest.raises(TypeError):
        save_maps(object(), str(tmp_path / "x.h5"))
    assert not (tmp_path / "x.h5").exists()


# ──────────────────────────────────────────────────────────────
# Reading outputs
# ──────────────────────────────────────────────────────────────

def test_read_info_missing_output(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_info(3, str(tmp_path))


@needs_ramses_data
def test_read_info_real_output():
    info = read_info(1, str(RAMSES_OUTPUT_ROOT))
    assert info.levelmin <= info.levelmax
    assert info.hydro and info.amr
    assert info.scale["standard"] == 1.0


@needs_ramses_data
def test_read_hydro_real_output():
    table = read_hydro(1, str(RAMSES_OUTPUT_ROOT))
    assert table.nrows > 0
    levels = table["level"]
    assert levels.min() >= table.info.levelmin and levels.max() <= table.info.levelmax
    # indices of a level-l cell lie in 1..2**l
    assert np.all(table["cx"] >= 1) and np.all(table["cx"] <= 2 ** levels)
    assert getvar(table, "mass").sum() > 0
