# -*- coding: utf-8 -*-

"""

Default variable resolver.

The selection/histogram/projection code never computes physics itself: it asks
a resolver ``resolver(table, name, unit) -> ndarray`` for every quantity it
needs. ``getvar`` is the minimal resolver shipped with drishti. It knows about
raw columns, cell-center positions and cell sizes of AMR tables, and cell
masses from densities. Anything richer (velocity dispersion, free-fall time,
...) is supplied by the caller as a custom resolver with the same signature.

"""

from __future__ import annotations

from typing import Callable, Mapping, Union

import numpy as np

from .errors import UnknownUnitError, UnknownVariableError
from .types import AMRTable, SimInfo

Resolver = Callable[[AMRTable, str, str], np.ndarray]

_POSITIONS = {"x": "cx", "y": "cy", "z": "cz"}


def getunit(source: Union[SimInfo, AMRTable, Mapping[str, float]], unit: str) -> float:
    """Conversion factor from code units to ``unit``."""
    scale = source if isinstance(source, Mapping) else source.scale
    try:
        return float(scale[unit])
    except KeyError:
        raise UnknownUnitError(f"Unit '{unit}' is not defined; known units: {sorted(scale)}") from None


def cell_levels(table: AMRTable) -> np.ndarray:
    """Per-row level; tables without a level column are a uniform grid at lmax."""
    if "level" in table:
        return np.asarray(table["level"])
    return np.full(table.nrows, table.lmax, dtype=np.int64)


def cellsize(table: AMRTable) -> np.ndarray:
    """Cell size in code units, ``boxlen / 2**level``."""
    return table.boxlen / np.exp2(cell_levels(table))


def _code_units(table: AMRTable, name: str) -> np.ndarray:
    kind = table.data_kind

    if name in table:
        return np.asarray(table[name], dtype=np.float64)

    if kind.has_amr_level:
        if name in _POSITIONS:
            # cell center: index cx covers [(cx - 1) * dx, cx * dx]
            return (np.asarray(table[_POSITIONS[name]], dtype=np.float64) - 0.5) * cellsize(table)
        if name == "cellsize":
            return cellsize(table)
        if name == "volume":
            return cellsize(table) ** 3
        if name == "mass" and "rho" in table:
            return np.asarray(table["rho"], dtype=np.float64) * cellsize(table) ** 3

    if name in _POSITIONS and kind.name == "clumps":
        return np.asarray(table[f"peak_{name}"], dtype=np.float64)

    raise UnknownVariableError(f"Variable '{name}' cannot be derived from {table.kind} data")


def getvar(table: AMRTable, name: str, unit: str = "standard") -> np.ndarray:
    """
    Resolve ``name`` on every row of ``table`` in ``unit``.

    Returns:
        1D float64 array with one value per row.
    """
    return _code_units(table, name) * getunit(table, unit)
