"""
Shared fixtures: small synthetic snapshots with known geometry.

 - uniform_table : 8x8x8 hydro cells at level 3 (levelmin == levelmax)
 - amr_table     : level-3 cells for x < 0.5, level-4 cells for x > 0.5
 - particle_table: random particles with mass and birth time
 - six_cells     : 6 cells on levels 3 and 4 with masses 1..6

Every hydro fixture has rho = 1, so the total mass of a full box is 1.

"""

import itertools

import numpy as np
import pytest

from drishti.types import AMRTable, SimInfo


SCALE = {"kpc": 48.0, "pc": 48000.0, "Msol": 1.0, "Myr": 1.0, "Msol_pc2": 1.0}


def _grid(level, xs, ys, zs):
    cells = np.array(list(itertools.product(xs, ys, zs)), dtype=np.int64)
    return {
        "cx": cells[:, 0],
        "cy": cells[:, 1],
        "cz": cells[:, 2],
        "level": np.full(len(cells), level, dtype=np.int64),
    }


@pytest.fixture
def uniform_info():
    return SimInfo(levelmin=3, levelmax=3, boxlen=1.0, scale=SCALE)


@pytest.fixture
def amr_info():
    return SimInfo(levelmin=3, levelmax=4, boxlen=1.0, particles=True, scale=SCALE)


@pytest.fixture
def uniform_table(uniform_info):
    cols = _grid(3, range(1, 9), range(1, 9), range(1, 9))
    cols["rho"] = np.ones(len(cols["cx"]))
    return AMRTable(cols, info=uniform_info)


@pytest.fixture
def amr_table(amr_info):
    coarse = _grid(3, range(1, 5), range(1, 9), range(1, 9))
    fine = _grid(4, range(9, 17), range(1, 17), range(1, 17))
    cols = {k: np.concatenate([coarse[k], fine[k]]) for k in coarse}
    cols["rho"] = np.ones(len(cols["cx"]))
    return AMRTable(cols, info=amr_info)


@pytest.fixture
def particle_table(amr_info):
    rng = np.random.default_rng(42)
    n = 1000
    return AMRTable(
        {
            "x": rng.uniform(0.0, 1.0, n),
            "y": rng.uniform(0.0, 1.0, n),
            "z": rng.uniform(0.0, 1.0, n),
            "mass": rng.uniform(0.5, 1.5, n),
            "birth": rng.uniform(-5.0, 20.0, n),
        },
        info=amr_info,
        kind="particles",
    )


@pytest.fixture
def six_cells(amr_info):
    return AMRTable(
        {
            "cx": np.array([1, 8, 1, 16, 5, 12]),
            "cy": np.array([1, 8, 16, 1, 5, 12]),
            "cz": np.array([1, 4, 8, 8, 8, 8]),
            "level": np.array([3, 3, 4, 4, 4, 4]),
            "mass": np.arange(1.0, 7.0),
            "rho": np.ones(6),
        },
        info=amr_info,
    )
