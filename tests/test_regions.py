"""
Unit tests for subregion selection.

These tests verify that selections:
1. Return the input table untouched when no bounds are given
2. Split a table exactly in two with forward/inverse selections
3. Scale bounds by the level of each AMR cell (whole cells with cell=True)
4. Reject degenerate cylinders, spheres and shells

"""

import numpy as np
import pytest

from drishti.errors import InvalidShapeParamsError
from drishti.regions import shellregion, subregion
from drishti.variables import getvar


# ──────────────────────────────────────────────────────────────
# Cuboid
# ──────────────────────────────────────────────────────────────

def test_noop_cuboid_returns_same_object(amr_table):
    assert subregion(amr_table) is amr_table
    assert subregion(amr_table, xrange=(None, None)) is amr_table


def test_forward_and_inverse_are_complementary(amr_table):
    sub = subregion(amr_table, xrange=(0.2, 0.6), zrange=(0.1, 0.4))
    inv = subregion(amr_table, xrange=(0.2, 0.6), zrange=(0.1, 0.4), inverse=True)

    assert sub.nrows + inv.nrows == amr_table.nrows
    assert sub.nrows > 0 and inv.nrows > 0
    assert sub.ranges.axis("x") == (0.2, 0.6)
    assert inv.ranges == amr_table.ranges

    key = lambda t: set(zip(t["cx"], t["cy"], t["cz"], t["level"]))
    assert key(sub).isdisjoint(key(inv))


def test_uniform_grid_whole_cells(uniform_table):
    """0.3..0.6 of an 8-cell axis: indices 2..5 whole, 3..4 strictly."""
    whole = subregion(uniform_table, xrange=(0.3, 0.6))
    strict = subregion(uniform_table, xrange=(0.3, 0.6), cell=False)
    assert whole.nrows == 4 * 64
    assert strict.nrows == 2 * 64
    assert set(strict["cx"]) == {3, 4}


def test_amr_bounds_scaled_per_level(amr_table):
    """x >= 0.5: index 4 on level 3, indices 8..16 on level 4."""
    sub = subregion(amr_table, xrange=(0.5, 1.0), cell=False)
    coarse = sub["level"] == 3
    assert set(sub["cx"][coarse]) == {4}
    assert np.count_nonzero(coarse) == 64
    assert np.count_nonzero(~coarse) == 2048


def test_nested_selection_stays_inside_parent(amr_table):
    sub = subregion(amr_table, xrange=(0.2, 0.6))
    sub2 = subregion(sub, xrange=(0.0, 0.9))
    assert sub2.ranges.axis("x") == (0.2, 0.6)
    assert sub2.nrows == sub.nrows


def test_particles_use_physical_coordinates(particle_table):
    sub = subregion(particle_table, xrange=(0.25, 0.5), yrange=(0.1, 0.2))
    x = getvar(sub, "x")
    y = getvar(sub, "y")
    assert np.all((x >= 0.25) & (x <= 0.5))
    assert np.all((y >= 0.1) & (y <= 0.2))
    inside = (particle_table["x"] >= 0.25) & (particle_table["x"] <= 0.5)
    inside &= (particle_table["y"] >= 0.1) & (particle_table["y"] <= 0.2)
    assert sub.nrows == np.count_nonzero(inside)


# ──────────────────────────────────────────────────────────────
# Cylinder, sphere and shells
# ──────────────────────────────────────────────────────────────

def test_sphere_lattice_count(uniform_table):
    """Radius 2 cells around index (4,4,4): 1 + 6 + 12 + 8 + 6 lattice points."""
    sub = subregion(uniform_table, shape="sphere", radius=0.25, center=("bc",))
    assert sub.nrows == 33


def test_cylinder_lattice_count(uniform_table):
    """Disc of radius 2 (13 points) times 3 layers."""
    sub = subregion(uniform_table, shape="cylinder", radius=0.25, height=0.125, center=("bc",))
    assert sub.nrows == 39
    inv = subregion(uniform_table, shape="cylinder", radius=0.25, height=0.125, center=("bc",), inverse=True)
    assert inv.nrows == uniform_table.nrows - 39


def test_sphere_shell_excludes_core(uniform_table):
    sub = shellregion(uniform_table, shape="sphere", radius=(0.125, 0.25), center=("bc",))
    assert sub.nrows == 32


def test_cylinder_shell(particle_table):
    sub = shellregion(particle_table, radius=(0.1, 0.3), height=0.2, center=(0.5, 0.5, 0.5))
    r = np.hypot(getvar(sub, "x") - 0.5, getvar(sub, "y") - 0.5)
    assert np.all((r >= 0.1) & (r <= 0.3))
    assert np.all(np.abs(getvar(sub, "z") - 0.5) <= 0.2)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(shape="sphere", radius=0.0, center=(0.5, 0.5, 0.5)),
        dict(shape="sphere", radius=0.1, center=(0.5, 0.0, 0.5)),
        dict(shape="cylinder", radius=0.1, height=0.0, center=(0.5, 0.5, 0.5)),
        dict(shape="cylinder", radius=0.1, height=0.1, center=(0.5, 0.5, 0.5), direction="x"),
        dict(shape="pyramid"),
    ],
)
def test_invalid_shape_params(uniform_table, kwargs):
    with pytest.raises(InvalidShapeParamsError):
        subregion(uniform_table, **kwargs)


def test_invalid_shell_radii(uniform_table):
    with pytest.raises(InvalidShapeParamsError):
        shellregion(uniform_table, shape="sphere", radius=(0.3, 0.2), center=("bc",))
    with pytest.raises(InvalidShapeParamsError):
        shellregion(uniform_table, shape="sphere", radius=(0.1,), center=("bc",))
