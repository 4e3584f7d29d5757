# -*- coding: utf-8 -*-

"""

Range normalization.

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Users give regions in whatever unit is convenient: normalized box units
(``range_unit="standard"``) or any unit of the simulation scale table (kpc,
pc, ...), optionally relative to a center. Everything downstream works in
normalized box units, where [0, 1] spans the full domain regardless of units.

Tip on “normalized ranges”:
    A bound ``b`` given in unit ``u`` relative to center ``c`` becomes
    ``(b + c) / (boxlen * scale[u])``. ``"bc"``/``"boxcenter"`` as a center
    component means the middle of the box in that same unit.

Resolved bounds are validated (min <= max) and then clamped into the range of
the table they are applied to, so a selection never extrapolates beyond its
parent data.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import BOX_CENTER_MARKERS, diagnostic_level
from .errors import InvalidRangeError
from .types import FULL_RANGE, NormalizedRange, SimInfo
from .variables import getunit

logger = logging.getLogger("drishti")

Bound = Optional[float]
AxisRange = Sequence[Bound]
CenterSpec = Sequence[Union[float, str]]


@dataclass(frozen=True)
class ShapeGeometry:
    """Normalized geometry of a cylinder, sphere or shell."""

    ranges: NormalizedRange
    center: Tuple[float, float, float]
    radius: float
    height: float = 0.0
    radius_in: float = 0.0


def _conversion(info: SimInfo, range_unit: str) -> float:
    if range_unit == "standard":
        return 1.0
    return info.boxlen * getunit(info, range_unit)


def is_center_marker(value) -> bool:
    return isinstance(value, str) and value in BOX_CENTER_MARKERS


def resolve_center(center: CenterSpec, conv: float) -> List[float]:
    """
    Expand box-center markers and return a 3-component center in the range unit.

    A single-element center holding a marker expands on every axis.
    """
    center = list(center)

    if len(center) == 1:
        if is_center_marker(center[0]):
            return [conv / 2.0] * 3
        raise InvalidRangeError(f"A single-component center must be one of {BOX_CENTER_MARKERS}, got {center[0]!r}")

    if len(center) != 3:
        raise InvalidRangeError(f"Center needs 3 components, got {len(center)}")

    resolved = []
    for value in center:
        if is_center_marker(value):
            resolved.append(conv / 2.0)
        elif isinstance(value, str):
            raise InvalidRangeError(f"Unknown center marker {value!r}; use one of {BOX_CENTER_MARKERS}")
        else:
            resolved.append(float(value))
    return resolved


def _pair(axis_range: Optional[AxisRange]) -> Tuple[Bound, Bound]:
    if axis_range is None:
        return (None, None)
    lo, hi = axis_range
    return lo, hi


def _clamp(ranges: Sequence[float], dataranges: NormalizedRange) -> NormalizedRange:
    parent = dataranges.as_list()
    out = []
    for i, value in enumerate(ranges):
        lo, hi = parent[2 * (i // 2)], parent[2 * (i // 2) + 1]
        out.append(float(np.clip(value, lo, hi)))
    return NormalizedRange.from_sequence(out)


def _validate(values: Sequence[float]) -> None:
    for name, i in (("x", 0), ("y", 2), ("z", 4)):
        if values[i] > values[i + 1]:
            raise InvalidRangeError(f"{name}min > {name}max ({values[i]:.7g} > {values[i + 1]:.7g})")


def _log_domain(
    info: SimInfo,
    ranges: NormalizedRange,
    center: Sequence[float],
    verbose: bool,
) -> None:
    level = diagnostic_level(verbose)
    if not logger.isEnabledFor(level):
        return

    if any(c != 0.0 for c in center):
        logger.log(
            level,
            "center: [%.7g, %.7g, %.7g] ==> [%.4g :: %.4g :: %.4g] (code units)",
            *center,
            *(c * info.boxlen for c in center),
        )

    logger.log(level, "domain:")
    for axis in ("x", "y", "z"):
        lo, hi = ranges.axis(axis)
        logger.log(
            level,
            "%smin::%smax: %.7g :: %.7g ==> %.4g :: %.4g (code units)",
            axis,
            axis,
            lo,
            hi,
            lo * info.boxlen,
            hi * info.boxlen,
        )


def prep_ranges(
    info: SimInfo,
    range_unit: str = "standard",
    xrange: Optional[AxisRange] = None,
    yrange: Optional[AxisRange] = None,
    zrange: Optional[AxisRange] = None,
    center: CenterSpec = (0.0, 0.0, 0.0),
    dataranges: NormalizedRange = FULL_RANGE,
    verbose: bool = False,
) -> NormalizedRange:
    """
    Convert user cuboid ranges into a validated, clamped NormalizedRange.

    Args:
        info: Simulation metadata (box length and unit scales).
        range_unit: "standard" for normalized box units, else a unit of info.scale.
        xrange, yrange, zrange: (min, max) pairs; None entries mean "full extent".
        center: 3 values (or box-center markers) the ranges are relative to.
        dataranges: Range of the table being selected from; unspecified bounds
            default to it and resolved bounds are clamped into it.
        verbose: Log a summary of the resolved domain at INFO level.

    Raises:
        InvalidRangeError: if a resolved min exceeds its max.
    """
    conv = _conversion(info, range_unit)
    center_v = resolve_center(center, conv)
    parent = dataranges.as_list()

    resolved = []
    for axis_idx, axis_range in enumerate((xrange, yrange, zrange)):
        for side, bound in enumerate(_pair(axis_range)):
            if bound is None:
                resolved.append(parent[2 * axis_idx + side])
            else:
                resolved.append((float(bound) + center_v[axis_idx]) / conv)

    _validate(resolved)
    ranges = _clamp(resolved, dataranges)

    _log_domain(info, ranges, [c / conv for c in center_v], verbose)
    return ranges


def _shape_ranges(
    center: Sequence[float],
    radius: float,
    height: float,
    dataranges: NormalizedRange,
) -> NormalizedRange:
    half_z = height if height > 0.0 else radius
    cx, cy, cz = center
    values = [cx - radius, cx + radius, cy - radius, cy + radius, cz - half_z, cz + half_z]
    _validate(values)
    return _clamp(values, dataranges)


def prep_shape_ranges(
    info: SimInfo,
    center: CenterSpec,
    radius: float,
    height: float = 0.0,
    range_unit: str = "standard",
    dataranges: NormalizedRange = FULL_RANGE,
    verbose: bool = False,
) -> ShapeGeometry:
    """
    Normalize the center, radius and height of a cylinder or sphere.

    ``height`` is the half-height of a z-aligned cylinder; pass 0 for a sphere.
    The returned ranges are the enclosing cuboid clamped into ``dataranges``.
    """
    conv = _conversion(info, range_unit)
    center_n = tuple(c / conv for c in resolve_center(center, conv))
    radius_n = float(radius) / conv
    height_n = float(height) / conv

    ranges = _shape_ranges(center_n, radius_n, height_n, dataranges)
    _log_domain(info, ranges, center_n, verbose)
    logger.log(diagnostic_level(verbose), "radius: %.7g  height: %.7g (normalized)", radius_n, height_n)

    return ShapeGeometry(ranges=ranges, center=center_n, radius=radius_n, height=height_n)


def prep_shell_ranges(
    info: SimInfo,
    center: CenterSpec,
    radius_in: float,
    radius_out: float,
    height: float = 0.0,
    range_unit: str = "standard",
    dataranges: NormalizedRange = FULL_RANGE,
    verbose: bool = False,
) -> ShapeGeometry:
    """Like prep_shape_ranges for a shell between ``radius_in`` and ``radius_out``."""
    geometry = prep_shape_ranges(info, center, radius_out, height, range_unit, dataranges, verbose)
    radius_in_n = float(radius_in) / _conversion(info, range_unit)
    logger.log(diagnostic_level(verbose), "inner radius: %.7g (normalized)", radius_in_n)
    return ShapeGeometry(
        ranges=geometry.ranges,
        center=geometry.center,
        radius=geometry.radius,
        height=geometry.height,
        radius_in=radius_in_n,
    )
