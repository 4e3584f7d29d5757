# -*- coding: utf-8 -*-

"""

Data model shared by the selection, histogram and projection code.

──────────────────────────────────────────────────────────────────────────────
Overview
──────────────────────────────────────────────────────────────────────────────
 - SimInfo        : simulation metadata (levels, box length, datatype flags, units)
 - AMRTable       : column-oriented snapshot (cells or particles) + carried metadata
 - DataKind       : capability record telling the selectors how rows are located
 - NormalizedRange: cuboid in box units [0, 1]^3
 - Histogram2D / ProjectionMaps : results

Tables are never mutated by the library: selections return new tables that
share the metadata of their parent and only differ in rows and ``ranges``.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np


# ─────────────────────────────────────────────────────────────────────────────
# Simulation metadata
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class SimInfo:
    """
    Metadata of one simulation output.

    ``scale`` maps unit names to the factor converting code units into that
    unit; ``"standard"`` (code units) is always present with factor 1.
    """

    levelmin: int
    levelmax: int
    boxlen: float = 1.0
    output: int = 0
    path: str = ""
    time: float = 0.0
    ncpu: int = 1
    hydro: bool = True
    amr: bool = True
    gravity: bool = False
    particles: bool = False
    clumps: bool = False
    sinks: bool = False
    rt: bool = False
    scale: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.scale = dict(self.scale)
        self.scale.setdefault("standard", 1.0)

    @property
    def data_types(self) -> List[str]:
        names = ("hydro", "amr", "gravity", "particles", "clumps", "sinks", "rt")
        return [n for n in names if getattr(self, n)]


# ─────────────────────────────────────────────────────────────────────────────
# Dataset capabilities
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DataKind:
    """How rows of a dataset are located in space."""

    name: str
    has_amr_level: bool
    coordinate_fields: Tuple[str, str, str]


DATA_KINDS: Dict[str, DataKind] = {
    "hydro": DataKind("hydro", True, ("cx", "cy", "cz")),
    "gravity": DataKind("gravity", True, ("cx", "cy", "cz")),
    "particles": DataKind("particles", False, ("x", "y", "z")),
    "clumps": DataKind("clumps", False, ("peak_x", "peak_y", "peak_z")),
}


# ─────────────────────────────────────────────────────────────────────────────
# Ranges
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NormalizedRange:
    """Cuboid in normalized box units. Invariant: min <= max on every axis."""

    xmin: float = 0.0
    xmax: float = 1.0
    ymin: float = 0.0
    ymax: float = 1.0
    zmin: float = 0.0
    zmax: float = 1.0

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "NormalizedRange":
        if len(values) != 6:
            raise ValueError(f"Expected 6 range values, got {len(values)}")
        return cls(*(float(v) for v in values))

    def as_list(self) -> List[float]:
        return [self.xmin, self.xmax, self.ymin, self.ymax, self.zmin, self.zmax]

    def axis(self, name: str) -> Tuple[float, float]:
        return getattr(self, f"{name}min"), getattr(self, f"{name}max")

    def __iter__(self) -> Iterator[float]:
        return iter(self.as_list())


FULL_RANGE = NormalizedRange()


# ─────────────────────────────────────────────────────────────────────────────
# Tables
# ─────────────────────────────────────────────────────────────────────────────

class AMRTable:
    """
    Columnar snapshot data.

    Columns are 1D numpy arrays of equal length. AMR cell tables carry integer
    ``cx, cy, cz`` indices (in units of ``2**level``) and a ``level`` column;
    particle tables carry physical ``x, y, z`` coordinates.
    """

    def __init__(
        self,
        columns: Mapping[str, Sequence],
        info: SimInfo,
        kind: str = "hydro",
        lmin: Optional[int] = None,
        lmax: Optional[int] = None,
        boxlen: Optional[float] = None,
        ranges: Optional[NormalizedRange] = None,
        selected_vars: Optional[Sequence[str]] = None,
        scale: Optional[Mapping[str, float]] = None,
    ):
        if kind not in DATA_KINDS:
            raise ValueError(f"Unknown data kind '{kind}'; expected one of {sorted(DATA_KINDS)}")

        self.columns: Dict[str, np.ndarray] = {k: np.asarray(v) for k, v in columns.items()}

        lengths = {len(v) for v in self.columns.values()}
        if len(lengths) > 1:
            raise ValueError(f"All columns must have the same length, got lengths {sorted(lengths)}")

        self.info = info
        self.kind = kind
        self.lmin = info.levelmin if lmin is None else int(lmin)
        self.lmax = info.levelmax if lmax is None else int(lmax)
        self.boxlen = info.boxlen if boxlen is None else float(boxlen)
        self.ranges = FULL_RANGE if ranges is None else ranges
        self.selected_vars = list(self.columns) if selected_vars is None else list(selected_vars)
        self.scale = dict(info.scale if scale is None else scale)

    @property
    def data_kind(self) -> DataKind:
        return DATA_KINDS[self.kind]

    @property
    def nrows(self) -> int:
        if not self.columns:
            return 0
        return len(next(iter(self.columns.values())))

    def __len__(self) -> int:
        return self.nrows

    def __getitem__(self, name: str) -> np.ndarray:
        return self.columns[name]

    def __contains__(self, name: object) -> bool:
        return name in self.columns

    def keys(self) -> List[str]:
        return list(self.columns)

    def select_rows(self, mask: np.ndarray, ranges: Optional[NormalizedRange] = None) -> "AMRTable":
        """Return a new table holding the rows where ``mask`` is True."""
        mask = np.asarray(mask, dtype=bool)
        return AMRTable(
            {k: v[mask] for k, v in self.columns.items()},
            info=self.info,
            kind=self.kind,
            lmin=self.lmin,
            lmax=self.lmax,
            boxlen=self.boxlen,
            ranges=self.ranges if ranges is None else ranges,
            selected_vars=self.selected_vars,
            scale=self.scale,
        )

    def __repr__(self) -> str:
        return (
            f"AMRTable(kind={self.kind!r}, rows={self.nrows}, columns={self.keys()}, "
            f"lmin={self.lmin}, lmax={self.lmax}, boxlen={self.boxlen})"
        )


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Histogram2D:
    """Weighted 2D histogram; ``weights`` has shape (len(xedges)-1, len(yedges)-1)."""

    weights: np.ndarray
    xedges: np.ndarray
    yedges: np.ndarray
    closed: str
    weight: Tuple[str, str]
    nbins: Tuple[int, int]
    extent: Tuple[float, float, float, float]
    ratio: float
    mode: str = "none"

    @property
    def total(self) -> float:
        return float(np.sum(self.weights))


@dataclass
class ProjectionMaps:
    """2D maps of one or more variables projected along ``direction``."""

    maps: Dict[str, np.ndarray]
    maps_unit: Dict[str, str]
    maps_weight: Dict[str, Optional[Tuple[str, str]]]
    maps_mode: Dict[str, str]
    xedges: np.ndarray
    yedges: np.ndarray
    extent: Tuple[float, float, float, float]
    ranges: NormalizedRange
    direction: str
    pixsize: Tuple[float, float]
    boxlen: float
    weight_map: np.ndarray
    stats: Dict[str, float] = field(default_factory=dict)
