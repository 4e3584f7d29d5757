# -*- coding: utf-8 -*-

"""

Subregion selection.

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Filters the rows of an AMRTable to those inside (or, with ``inverse=True``,
outside) a geometric shape:

 - Cuboid           : x/y/z ranges
 - Cylinder         : radius + half-height around a center, z-aligned
 - Sphere           : radius around a center
 - CylinderShell    : inner/outer radius + half-height
 - SphereShell      : inner/outer radius

One predicate per shape serves every dataset kind. The kind only decides where
a row sits (``DataKind``):

 - AMR cells compare their integer index (cx, cy, cz) against bounds scaled by
   ``2**level`` (``2**lmax`` for a uniform grid). With ``cell=True`` bounds are
   widened to whole cells (floor/ceil), so cells that only partially overlap the
   region are kept.
 - Particles and clumps compare physical coordinates against bounds scaled by
   ``boxlen``.

An inverse selection is the set complement of the forward one; its ``ranges``
are reset to the parent's, since the complement is not a cuboid.

"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .checks import checkuniformgrid
from .config import diagnostic_level
from .errors import InvalidShapeParamsError
from .ranges import (
    AxisRange,
    CenterSpec,
    ShapeGeometry,
    prep_ranges,
    prep_shape_ranges,
    prep_shell_ranges,
)
from .types import AMRTable, NormalizedRange

logger = logging.getLogger("drishti")


# ─────────────────────────────────────────────────────────────────────────────
# Row positions
# ─────────────────────────────────────────────────────────────────────────────

class _Positions:
    """
    Row coordinates and the per-row factor turning normalized bounds into the
    coordinate's own unit.
    """

    def __init__(self, table: AMRTable, cell: bool):
        kind = table.data_kind
        fx, fy, fz = kind.coordinate_fields
        self.x = np.asarray(table[fx], dtype=np.float64)
        self.y = np.asarray(table[fy], dtype=np.float64)
        self.z = np.asarray(table[fz], dtype=np.float64)

        if kind.has_amr_level:
            if checkuniformgrid(table.info, table.lmax) and "level" in table:
                self.factor = np.exp2(np.asarray(table["level"], dtype=np.float64))
            else:
                self.factor = np.full(len(self.x), 2.0 ** table.lmax)
            self.whole_cells = cell
        else:
            self.factor = np.full(len(self.x), float(table.boxlen))
            self.whole_cells = False

    def lower(self, bound: float) -> np.ndarray:
        scaled = self.factor * bound
        return np.floor(scaled) if self.whole_cells else scaled

    def upper(self, bound: float) -> np.ndarray:
        scaled = self.factor * bound
        return np.ceil(scaled) if self.whole_cells else scaled

    def center(self, center: Sequence[float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return tuple(self.factor * c for c in center)

    def radius(self, radius: float) -> np.ndarray:
        # extents around a center only grow outward
        return self.upper(radius)


def _table_memory(table: AMRTable) -> str:
    nbytes = float(sum(col.nbytes for col in table.columns.values()))
    for unit in ("B", "KB", "MB", "GB"):
        if nbytes < 1024.0:
            return f"{nbytes:.3g} {unit}"
        nbytes /= 1024.0
    return f"{nbytes:.3g} TB"


# ─────────────────────────────────────────────────────────────────────────────
# Shapes
# ─────────────────────────────────────────────────────────────────────────────

def _check_center(center: CenterSpec, label: str) -> None:
    for value in center:
        if isinstance(value, str):
            continue
        if float(value) == 0.0:
            raise InvalidShapeParamsError(f"given {label} or center should be != 0.")


def _check_positive(value: float, label: str) -> None:
    if not value > 0.0:
        raise InvalidShapeParamsError(f"given {label} should be > 0. (got {value})")


class Shape:
    """Base class: resolve geometry against a table, then test rows."""

    name = "shape"

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        raise NotImplementedError

    def inside(self, positions: _Positions) -> np.ndarray:
        raise NotImplementedError

    def is_noop(self) -> bool:
        return False


class Cuboid(Shape):

    name = "cuboid"

    def __init__(
        self,
        xrange: Optional[AxisRange] = None,
        yrange: Optional[AxisRange] = None,
        zrange: Optional[AxisRange] = None,
        center: CenterSpec = (0.0, 0.0, 0.0),
        range_unit: str = "standard",
    ):
        self.xrange = (None, None) if xrange is None else tuple(xrange)
        self.yrange = (None, None) if yrange is None else tuple(yrange)
        self.zrange = (None, None) if zrange is None else tuple(zrange)
        self.center = center
        self.range_unit = range_unit
        self._ranges: Optional[NormalizedRange] = None

    def is_noop(self) -> bool:
        return all(r == (None, None) for r in (self.xrange, self.yrange, self.zrange))

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        self._ranges = prep_ranges(
            table.info,
            self.range_unit,
            self.xrange,
            self.yrange,
            self.zrange,
            self.center,
            dataranges=table.ranges,
            verbose=verbose,
        )
        return self._ranges

    def inside(self, positions: _Positions) -> np.ndarray:
        r = self._ranges
        return (
            (positions.x >= positions.lower(r.xmin))
            & (positions.x <= positions.upper(r.xmax))
            & (positions.y >= positions.lower(r.ymin))
            & (positions.y <= positions.upper(r.ymax))
            & (positions.z >= positions.lower(r.zmin))
            & (positions.z <= positions.upper(r.zmax))
        )


class _Round(Shape):
    """Common parts of the cylinder/sphere family."""

    def __init__(self, center: CenterSpec, range_unit: str, direction: str = "z"):
        if direction != "z":
            raise InvalidShapeParamsError(
                f"direction '{direction}' is not supported; only z-aligned regions are defined"
            )
        self.center = center
        self.range_unit = range_unit
        self.direction = direction
        self._geometry: Optional[ShapeGeometry] = None

    def _offsets(self, positions: _Positions):
        cx, cy, cz = positions.center(self._geometry.center)
        return positions.x - cx, positions.y - cy, positions.z - cz


class Cylinder(_Round):

    name = "cylinder"

    def __init__(
        self,
        radius: float,
        height: float,
        center: CenterSpec,
        range_unit: str = "standard",
        direction: str = "z",
    ):
        _check_center(center, "radius, height")
        _check_positive(radius, "radius")
        _check_positive(height, "height")
        super().__init__(center, range_unit, direction)
        self.radius = radius
        self.height = height

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        self._geometry = prep_shape_ranges(
            table.info, self.center, self.radius, self.height, self.range_unit, table.ranges, verbose
        )
        return self._geometry.ranges

    def inside(self, positions: _Positions) -> np.ndarray:
        dx, dy, dz = self._offsets(positions)
        g = self._geometry
        return (np.hypot(dx, dy) <= positions.radius(g.radius)) & (np.abs(dz) <= positions.radius(g.height))


class Sphere(_Round):

    name = "sphere"

    def __init__(self, radius: float, center: CenterSpec, range_unit: str = "standard"):
        _check_center(center, "radius")
        _check_positive(radius, "radius")
        super().__init__(center, range_unit)
        self.radius = radius

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        self._geometry = prep_shape_ranges(
            table.info, self.center, self.radius, 0.0, self.range_unit, table.ranges, verbose
        )
        return self._geometry.ranges

    def inside(self, positions: _Positions) -> np.ndarray:
        dx, dy, dz = self._offsets(positions)
        return np.sqrt(dx ** 2 + dy ** 2 + dz ** 2) <= positions.radius(self._geometry.radius)


def _check_shell_radii(radius: Sequence[float]) -> Tuple[float, float]:
    if len(radius) != 2:
        raise InvalidShapeParamsError(f"shell radius must be (inner, outer), got {radius!r}")
    radius_in, radius_out = float(radius[0]), float(radius[1])
    _check_positive(radius_in, "inner radius")
    if radius_in > radius_out:
        raise InvalidShapeParamsError(f"inner radius {radius_in} > outer radius {radius_out}")
    return radius_in, radius_out


class CylinderShell(_Round):

    name = "cylinder"

    def __init__(
        self,
        radius: Sequence[float],
        height: float,
        center: CenterSpec,
        range_unit: str = "standard",
        direction: str = "z",
    ):
        self.radius_in, self.radius_out = _check_shell_radii(radius)
        _check_center(center, "radius, height")
        _check_positive(height, "height")
        super().__init__(center, range_unit, direction)
        self.height = height

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        self._geometry = prep_shell_ranges(
            table.info,
            self.center,
            self.radius_in,
            self.radius_out,
            self.height,
            self.range_unit,
            table.ranges,
            verbose,
        )
        return self._geometry.ranges

    def inside(self, positions: _Positions) -> np.ndarray:
        dx, dy, dz = self._offsets(positions)
        g = self._geometry
        r = np.hypot(dx, dy)
        return (
            (r >= positions.radius(g.radius_in))
            & (r <= positions.radius(g.radius))
            & (np.abs(dz) <= positions.radius(g.height))
        )


class SphereShell(_Round):

    name = "sphere"

    def __init__(self, radius: Sequence[float], center: CenterSpec, range_unit: str = "standard"):
        self.radius_in, self.radius_out = _check_shell_radii(radius)
        _check_center(center, "inner and outer radius")
        super().__init__(center, range_unit)

    def resolve(self, table: AMRTable, verbose: bool = False) -> NormalizedRange:
        self._geometry = prep_shell_ranges(
            table.info, self.center, self.radius_in, self.radius_out, 0.0, self.range_unit, table.ranges, verbose
        )
        return self._geometry.ranges

    def inside(self, positions: _Positions) -> np.ndarray:
        dx, dy, dz = self._offsets(positions)
        g = self._geometry
        r = np.sqrt(dx ** 2 + dy ** 2 + dz ** 2)
        return (r >= positions.radius(g.radius_in)) & (r <= positions.radius(g.radius))


# ─────────────────────────────────────────────────────────────────────────────
# Selection entry points
# ─────────────────────────────────────────────────────────────────────────────

def select(
    table: AMRTable,
    shape: Shape,
    inverse: bool = False,
    cell: bool = True,
    verbose: bool = False,
) -> Tuple[AMRTable, NormalizedRange]:
    """
    Apply ``shape`` to ``table``.

    Returns:
        (new_table, resolved_ranges). For a cuboid without any bound the input
        table itself is returned. For ``inverse=True`` the ranges are the
        parent's.
    """
    if shape.is_noop():
        logger.debug("No bounds given for %s selection; returning input table", shape.name)
        return table, table.ranges

    ranges = shape.resolve(table, verbose=verbose)
    mask = shape.inside(_Positions(table, cell))

    if inverse:
        mask = ~mask
        ranges = table.ranges

    sub = table.select_rows(mask, ranges)
    logger.log(
        diagnostic_level(verbose),
        "%s%s selection: kept %d of %d rows (memory used for data table: %s)",
        "inverse " if inverse else "",
        shape.name,
        sub.nrows,
        table.nrows,
        _table_memory(sub),
    )
    return sub, ranges


def subregion(
    table: AMRTable,
    shape: str = "cuboid",
    xrange: Optional[AxisRange] = None,
    yrange: Optional[AxisRange] = None,
    zrange: Optional[AxisRange] = None,
    radius: float = 0.0,
    height: float = 0.0,
    center: CenterSpec = (0.0, 0.0, 0.0),
    range_unit: str = "standard",
    direction: str = "z",
    cell: bool = True,
    inverse: bool = False,
    verbose: bool = False,
) -> AMRTable:
    """
    Select a cuboid, cylinder or sphere from ``table``.

    Args:
        table: Source data (not modified).
        shape: "cuboid", "cylinder" or "sphere".
        xrange, yrange, zrange: Cuboid bounds, relative to ``center``.
        radius, height: Cylinder/sphere radius and cylinder half-height.
        center: Region center; components may be "bc"/"boxcenter".
        range_unit: "standard" (normalized) or a unit of the scale table.
        direction: Cylinder axis; only "z" is defined.
        cell: AMR only. Keep cells partially overlapping the region.
        inverse: Return everything outside the region instead.
        verbose: Log the resolved domain and the selection size at INFO.

    Returns:
        A new AMRTable (or ``table`` itself for an unbounded cuboid).
    """
    if shape == "cuboid":
        region: Shape = Cuboid(xrange, yrange, zrange, center, range_unit)
    elif shape == "cylinder":
        region = Cylinder(radius, height, center, range_unit, direction)
    elif shape == "sphere":
        region = Sphere(radius, center, range_unit)
    else:
        raise InvalidShapeParamsError(f"Unknown shape '{shape}'; use cuboid, cylinder or sphere")

    sub, _ = select(table, region, inverse=inverse, cell=cell, verbose=verbose)
    return sub


def shellregion(
    table: AMRTable,
    shape: str = "cylinder",
    radius: Sequence[float] = (0.0, 0.0),
    height: float = 0.0,
    center: CenterSpec = (0.0, 0.0, 0.0),
    range_unit: str = "standard",
    direction: str = "z",
    cell: bool = True,
    inverse: bool = False,
    verbose: bool = False,
) -> AMRTable:
    """Select a cylindrical or spherical shell between radius[0] and radius[1]."""
    if shape == "cylinder":
        region: Shape = CylinderShell(radius, height, center, range_unit, direction)
    elif shape == "sphere":
        region = SphereShell(radius, center, range_unit)
    else:
        raise InvalidShapeParamsError(f"Unknown shell shape '{shape}'; use cylinder or sphere")

    sub, _ = select(table, region, inverse=inverse, cell=cell, verbose=verbose)
    return sub
