# -*- coding: utf-8 -*-

"""

Guards on simulation metadata.

Each check raises a descriptive error when a request cannot be served by the
output at hand and is a no-op otherwise.

"""

from __future__ import annotations

from .errors import DataTypeUnavailableError, LevelOutOfBoundsError
from .types import SimInfo

_TYPE_LABELS = {
    "hydro": "hydro files",
    "amr": "amr files",
    "gravity": "gravity files",
    "rt": "rt files",
    "particles": "particle files",
    "clumps": "clump files",
    "sinks": "sink files",
}


def checkfortype(info: SimInfo, datatype: str) -> None:
    """Fail if the simulation output has no files of ``datatype``."""
    if datatype not in _TYPE_LABELS:
        raise DataTypeUnavailableError(
            f"Unknown datatype '{datatype}'; expected one of {sorted(_TYPE_LABELS)}"
        )
    if not getattr(info, datatype):
        raise DataTypeUnavailableError(f"Simulation has no {_TYPE_LABELS[datatype]}!")


def checklevelmax(info: SimInfo, lmax: int) -> None:
    """Fail if ``lmax`` lies outside [info.levelmin, info.levelmax]."""
    if info.levelmax < lmax:
        raise LevelOutOfBoundsError(f"Simulation lmax={info.levelmax} < your lmax={lmax}")
    if lmax < info.levelmin:
        raise LevelOutOfBoundsError(f"Simulation lmin={info.levelmin} > your lmin={lmax}")


def checkuniformgrid(info: SimInfo, lmax: int) -> bool:
    """
    Return True for AMR data, False for a uniform grid.

    Data loaded with ``lmax == levelmin`` is a uniform grid even when the
    simulation itself is refined.
    """
    return lmax != info.levelmin
