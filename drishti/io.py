#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Reading RAMSES outputs and storing results.

──────────────────────────────────────────────────────────────────────────────
IT SUPPORTS:
──────────────────────────────────────────────────────────────────────────────
 - read_info  : simulation metadata (levels, box length, unit scales, which
                datatypes were written) of one output
 - read_hydro : the AMR hydro cells of one output as an AMRTable, with integer
                cell indices recovered from osyris cell centers and sizes
 - save_maps  : write a ProjectionMaps or Histogram2D to HDF5, including the
                generator metadata (command line, timestamp, version)
 - load_maps  : read such a file back into plain dictionaries

Snapshots are loaded with osyris.RamsesDataset; result files are written with
h5py.

"""

from __future__ import annotations

import glob
import logging
import os
import shlex
import sys
import time
from typing import Dict, Optional, Union

import h5py as h5
import numpy as np
import osyris

from .config import __version__
from .types import AMRTable, Histogram2D, ProjectionMaps, SimInfo

logger = logging.getLogger("drishti")

# physical constants [cgs]
PC = 3.08567758128e18
MSOL = 1.9891e33
YR = 3.15576e7

# datatype flag -> RAMSES file prefix inside output_NNNNN/
_DATATYPE_FILES = {
    "hydro": "hydro",
    "amr": "amr",
    "gravity": "grav",
    "particles": "part",
    "clumps": "clump",
    "sinks": "sink",
    "rt": "rt",
}


def create_scales(unit_l: float, unit_d: float, unit_t: float) -> Dict[str, float]:
    """Factors converting code units into common physical units."""
    unit_m = unit_d * unit_l**3
    return {
        "standard": 1.0,
        "Mpc": unit_l / PC / 1e6,
        "kpc": unit_l / PC / 1e3,
        "pc": unit_l / PC,
        "km": unit_l / 1.0e5,
        "cm": unit_l,
        "Msol_pc3": unit_d * PC**3 / MSOL,
        "Msol_pc2": unit_d * unit_l * PC**2 / MSOL,
        "g_cm3": unit_d,
        "Myr": unit_t / YR / 1e6,
        "yr": unit_t / YR,
        "s": unit_t,
        "Msol": unit_m / MSOL,
        "g": unit_m,
        "km_s": unit_l / unit_t / 1e5,
        "cm_s": unit_l / unit_t,
        "erg": unit_m * (unit_l / unit_t) ** 2,
        "Ba": unit_m / unit_l / unit_t**2,
    }


def _magnitude(value) -> float:
    # osyris stores some metadata as pint quantities
    return float(getattr(value, "magnitude", value))


def _output_dir(output: int, path: str) -> str:
    return os.path.join(path, f"output_{output:05d}")


def read_info(output: int, path: str = "./") -> SimInfo:
    """
    Read the metadata of RAMSES output ``output`` under ``path``.

    Raises:
        FileNotFoundError: if ``path/output_NNNNN`` does not exist.
    """
    outdir = _output_dir(output, path)
    if not os.path.isdir(outdir):
        raise FileNotFoundError(f"Output folder not found: {outdir}")

    meta = osyris.RamsesDataset(output, path=path).meta

    flags = {
        flag: bool(glob.glob(os.path.join(outdir, f"{prefix}_{output:05d}.out*")))
        for flag, prefix in _DATATYPE_FILES.items()
    }

    info = SimInfo(
        levelmin=int(meta["levelmin"]),
        levelmax=int(meta["levelmax"]),
        boxlen=_magnitude(meta.get("boxlen", 1.0)),
        output=output,
        path=os.path.abspath(path),
        time=_magnitude(meta.get("time", 0.0)),
        ncpu=int(meta.get("ncpu", 1)),
        scale=create_scales(
            _magnitude(meta["unit_l"]), _magnitude(meta["unit_d"]), _magnitude(meta["unit_t"])
        ),
        **flags,
    )
    logger.debug(
        "read_info(%d): levels %d..%d, boxlen %g, types %s",
        output,
        info.levelmin,
        info.levelmax,
        info.boxlen,
        info.data_types,
    )
    return info


def _osyris_values(field, unit: str) -> np.ndarray:
    return np.asarray(field.to(unit).values, dtype=np.float64)


def read_hydro(output: int, path: str = "./", info: Optional[SimInfo] = None) -> AMRTable:
    """
    Load the hydro cells of one output into an AMRTable.

    Positions and sizes from osyris are converted to integer cell indices
    ``cx = round(x / dx + 0.5)``; density, velocity and pressure are converted
    back to code units (``rho``, ``vx``/``vy``/``vz``, ``p``); other scalar
    fields are kept as loaded.
    """
    info = info or read_info(output, path)
    if not info.hydro:
        raise FileNotFoundError(f"Output {output} under '{path}' has no hydro files")

    t0 = time.time()
    data = osyris.RamsesDataset(output, path=path).load()
    mesh = data["mesh"]

    sc = info.scale
    dx = np.asarray(mesh["dx"].values, dtype=np.float64)
    pos = mesh["position"]
    columns: Dict[str, np.ndarray] = {
        "level": np.asarray(mesh["level"].values, dtype=np.int64),
    }
    for axis in ("x", "y", "z"):
        coord = np.asarray(getattr(pos, axis).values, dtype=np.float64)
        columns[f"c{axis}"] = np.rint(coord / dx + 0.5).astype(np.int64)

    columns["rho"] = _osyris_values(mesh["density"], "g/cm**3") / sc["g_cm3"]
    if "velocity" in mesh:
        vel = mesh["velocity"]
        for axis in ("x", "y", "z"):
            columns[f"v{axis}"] = _osyris_values(getattr(vel, axis), "cm/s") / sc["cm_s"]
    if "pressure" in mesh:
        columns["p"] = _osyris_values(mesh["pressure"], "erg/cm**3") / sc["Ba"]

    skip = {"dx", "level", "position", "density", "velocity", "pressure", "cpu"}
    for name in mesh.keys():
        if name in skip:
            continue
        values = mesh[name].values
        if np.ndim(values) == 1:
            columns[name] = np.asarray(values)

    table = AMRTable(columns, info=info, kind="hydro")
    logger.info("Loaded %d hydro cells of output %d in %.2fs", table.nrows, output, time.time() - t0)
    return table


def save_maps(result: Union[ProjectionMaps, Histogram2D], filename: str) -> str:
    """
    Write a projection or histogram to HDF5.

    Returns:
        The filename written.
    """
    if not isinstance(result, (ProjectionMaps, Histogram2D)):
        raise TypeError(f"Cannot save object of type {type(result).__name__}")

    with h5.File(filename, "w") as f:
        f.attrs["generator_command"] = shlex.join(sys.argv)
        f.attrs["generator_timestamp"] = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        f.attrs["generator_version"] = __version__

        f.create_dataset("xedges", data=result.xedges)
        f.create_dataset("yedges", data=result.yedges)
        f.attrs["extent"] = np.asarray(result.extent, dtype=np.float64)

        if isinstance(result, ProjectionMaps):
            f.attrs["kind"] = "projection"
            f.attrs["direction"] = result.direction
            f.attrs["pixsize"] = np.asarray(result.pixsize, dtype=np.float64)
            f.attrs["boxlen"] = result.boxlen
            f.attrs["ranges"] = np.asarray(result.ranges.as_list(), dtype=np.float64)
            f.create_dataset("weight_map", data=result.weight_map)

            maps = f.create_group("maps", track_order=True)
            for name, arr in result.maps.items():
                ds = maps.create_dataset(name, data=arr)
                ds.attrs["unit"] = result.maps_unit[name]
                ds.attrs["mode"] = result.maps_mode[name]
                weight = result.maps_weight[name]
                ds.attrs["weight"] = "" if weight is None else ",".join(weight)
        else:
            f.attrs["kind"] = "histogram"
            f.attrs["closed"] = result.closed
            f.attrs["mode"] = result.mode
            f.attrs["weight"] = "" if result.weight is None else ",".join(result.weight)
            f.attrs["ratio"] = result.ratio
            f.create_dataset("weights", data=result.weights)

    logger.info("Saved '%s'", filename)
    return filename


def _attr(value):
    return value.decode() if isinstance(value, bytes) else value


def load_maps(filename: str) -> Dict[str, object]:
    """
    Read a file written by ``save_maps``.

    Returns:
        Dict with ``kind``, ``attrs`` (root attributes), ``xedges``, ``yedges``
        and either ``maps`` (name -> array) plus ``weight_map`` for projections
        or ``weights`` for histograms.
    """
    with h5.File(filename, "r") as f:
        out: Dict[str, object] = {
            "kind": _attr(f.attrs["kind"]),
            "attrs": {k: _attr(v) for k, v in f.attrs.items()},
            "xedges": f["xedges"][()],
            "yedges": f["yedges"][()],
        }
        if out["kind"] == "projection":
            out["maps"] = {name: ds[()] for name, ds in f["maps"].items()}
            out["maps_unit"] = {name: _attr(ds.attrs["unit"]) for name, ds in f["maps"].items()}
            out["maps_mode"] = {name: _attr(ds.attrs["mode"]) for name, ds in f["maps"].items()}
            out["weight_map"] = f["weight_map"][()]
        else:
            out["weights"] = f["weights"][()]
    return out
