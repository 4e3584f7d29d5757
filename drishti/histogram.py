# -*- coding: utf-8 -*-

"""

Weighted 1D/2D histograms.

──────────────────────────────────────────────────────────────────────────────
Binning rules
──────────────────────────────────────────────────────────────────────────────
 - ``nbins`` counts bin EDGES: edges are ``linspace(min, max, nbins)`` so an
   axis with ``nbins=N`` has N-1 bins. Unspecified min/max come from the data.
 - ``closed="left"``: bins are [a, b); the last bin also holds the upper edge.
   ``closed="right"``: bins are (a, b]; the first bin also holds the lower edge.
   Everything in [edges[0], edges[-1]] is therefore counted exactly once.
 - Values outside the edges, and NaN values, are not counted.
 - ``mask`` multiplies each row's weight (0/1 or a soft gate); it does not
   remove rows.
 - ``mode``: "none" (raw weighted counts), "density" (divided by bin area),
   "probability" (divided by the total weight), "pdf" (both). Empty or
   zero-width histograms normalize to non-finite values instead of raising.

"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .config import CLOSED_SIDES, HISTOGRAM_DEFAULTS, NORMALIZATION_MODES, diagnostic_level
from .errors import InvalidModeError, InvalidRangeError, MaskLengthMismatchError
from .types import AMRTable, Histogram2D
from .variables import Resolver, getvar

logger = logging.getLogger("drishti")

DataSpec = Union[np.ndarray, Sequence[float], Tuple[str, str], Tuple[str, str, str]]
Bounds = Sequence[Optional[float]]


# ─────────────────────────────────────────────────────────────────────────────
# Argument checks
# ─────────────────────────────────────────────────────────────────────────────

def check_closed(closed: str) -> None:
    if closed not in CLOSED_SIDES:
        raise InvalidModeError(f"closed must be one of {CLOSED_SIDES}, got {closed!r}")


def check_mode(mode: str) -> None:
    if mode not in NORMALIZATION_MODES:
        raise InvalidModeError(f"mode must be one of {NORMALIZATION_MODES}, got {mode!r}")


def check_mask(mask, nrows: int) -> Optional[np.ndarray]:
    """
    Validate a row mask.

    Returns:
        None when masking is disabled, else the mask as float64 weights.

    Raises:
        MaskLengthMismatchError: if the mask does not have one entry per row.
    """
    if mask is None:
        return None
    mask = np.asarray(mask)
    if mask.ndim != 1 or len(mask) != nrows:
        raise MaskLengthMismatchError(
            f"array-mask length: {mask.size} does not match with data-table length: {nrows}"
        )
    return mask.astype(np.float64)


def resolve_data(table: AMRTable, data: DataSpec, resolver: Resolver = getvar) -> np.ndarray:
    """
    Turn an axis specification into values.

    ``data`` is either an array, or ``(name, unit)`` / ``(name, unit, scaling)``
    with scaling "linear" (default) or "log10", resolved through ``resolver``.
    """
    if isinstance(data, tuple) and data and isinstance(data[0], str):
        name = data[0]
        unit = data[1] if len(data) > 1 else "standard"
        scaling = data[2] if len(data) > 2 else "linear"
        values = np.asarray(resolver(table, name, unit), dtype=np.float64)
        if scaling == "log10":
            with np.errstate(divide="ignore", invalid="ignore"):
                return np.log10(values)
        if scaling != "linear":
            raise InvalidModeError(f"Unknown scaling {scaling!r} for '{name}'; use 'linear' or 'log10'")
        return values
    return np.asarray(data, dtype=np.float64)


# ─────────────────────────────────────────────────────────────────────────────
# Edges and counting
# ─────────────────────────────────────────────────────────────────────────────

def bin_edges(values: np.ndarray, bounds: Bounds, nedges: int, axis: str = "x") -> np.ndarray:
    """Evenly spaced edges between the resolved bounds (``nedges`` edges)."""
    if nedges < 2:
        raise ValueError(f"{axis}: need at least 2 bin edges, got {nedges}")

    lo, hi = bounds
    if (lo is None or hi is None) and values.size == 0:
        raise ValueError(f"{axis}: cannot derive bin range from empty data")
    lo = float(np.nanmin(values)) if lo is None else float(lo)
    hi = float(np.nanmax(values)) if hi is None else float(hi)

    if lo > hi:
        raise InvalidRangeError(f"{axis}min > {axis}max ({lo:.7g} > {hi:.7g})")
    return np.linspace(lo, hi, nedges)


def histogram_binning(
    data_x: np.ndarray,
    data_y: np.ndarray,
    xrange: Bounds,
    yrange: Bounds,
    nbins: Sequence[int],
    closed: str,
    verbose: bool = False,
) -> Tuple[np.ndarray, np.ndarray, Tuple[float, float, float, float], float]:
    """Edges for both axes, the extent (xmin, xmax, ymin, ymax) and its aspect ratio."""
    xedges = bin_edges(data_x, xrange, int(nbins[0]), "x")
    yedges = bin_edges(data_y, yrange, int(nbins[1]), "y")
    extent = (float(xedges[0]), float(xedges[-1]), float(yedges[0]), float(yedges[-1]))

    height = extent[3] - extent[2]
    ratio = (extent[1] - extent[0]) / height if height else math.inf

    level = diagnostic_level(verbose)
    if closed == "left":
        logger.log(level, "bin intervals left-closed [a,b)  (default):")
    else:
        logger.log(level, "bin intervals right-closed (a,b]:")
    logger.log(level, "xrange: %.6g:%.6g  ->edges=%d", extent[0], extent[1], len(xedges))
    logger.log(level, "yrange: %.6g:%.6g  ->edges=%d", extent[2], extent[3], len(yedges))

    return xedges, yedges, extent, ratio


def bin_indices(values: np.ndarray, edges: np.ndarray, closed: str) -> Tuple[np.ndarray, np.ndarray]:
    """
    Bin index of every value and whether the value is counted at all.

    Indices are clamped into [0, nbins-1] so the outermost edges land in the
    outermost bins; ``valid`` excludes values outside the edges and NaN.
    """
    side = "right" if closed == "left" else "left"
    idx = np.searchsorted(edges, values, side=side) - 1
    idx = np.clip(idx, 0, len(edges) - 2)
    valid = (values >= edges[0]) & (values <= edges[-1])
    return idx, valid


def _bin_volumes(edges: Sequence[np.ndarray]) -> np.ndarray:
    volume = np.diff(edges[0])
    for e in edges[1:]:
        volume = np.multiply.outer(volume, np.diff(e))
    return volume


def normalize(weights: np.ndarray, edges: Sequence[np.ndarray], mode: str) -> np.ndarray:
    """Apply a normalization mode to a histogram with the given edges."""
    check_mode(mode)
    if mode == "none":
        return weights

    with np.errstate(divide="ignore", invalid="ignore"):
        if mode == "density":
            return weights / _bin_volumes(edges)
        total = weights.sum()
        if mode == "probability":
            return weights / total
        return weights / total / _bin_volumes(edges)


def histogram1d(
    values: np.ndarray,
    edges: np.ndarray,
    weights: Optional[np.ndarray] = None,
    closed: str = "left",
) -> np.ndarray:
    """Weighted counts of ``values`` over ``edges``."""
    check_closed(closed)
    values = np.asarray(values, dtype=np.float64)
    weights = np.ones_like(values) if weights is None else np.asarray(weights, dtype=np.float64)

    idx, valid = bin_indices(values, edges, closed)
    return np.bincount(idx[valid], weights=weights[valid], minlength=len(edges) - 1)


def fit_histogram2d(
    data_x: np.ndarray,
    data_y: np.ndarray,
    xedges: np.ndarray,
    yedges: np.ndarray,
    weights: Optional[np.ndarray] = None,
    closed: str = "left",
) -> np.ndarray:
    """Weighted 2D counts; result shape is (len(xedges)-1, len(yedges)-1)."""
    check_closed(closed)
    data_x = np.asarray(data_x, dtype=np.float64)
    data_y = np.asarray(data_y, dtype=np.float64)
    weights = np.ones_like(data_x) if weights is None else np.asarray(weights, dtype=np.float64)

    ix, vx = bin_indices(data_x, xedges, closed)
    iy, vy = bin_indices(data_y, yedges, closed)
    valid = vx & vy

    shape = (len(xedges) - 1, len(yedges) - 1)
    flat = ix[valid] * shape[1] + iy[valid]
    counts = np.bincount(flat, weights=weights[valid], minlength=shape[0] * shape[1])
    return counts.reshape(shape)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def histogram2d(
    table: AMRTable,
    data_x: DataSpec,
    data_y: DataSpec,
    xrange: Bounds = (None, None),
    yrange: Bounds = (None, None),
    nbins: Sequence[int] = HISTOGRAM_DEFAULTS["nbins"],
    weight: Optional[Tuple[str, str]] = HISTOGRAM_DEFAULTS["weight"],
    closed: str = HISTOGRAM_DEFAULTS["closed"],
    mask=None,
    mode: str = HISTOGRAM_DEFAULTS["mode"],
    resolver: Resolver = getvar,
    verbose: bool = False,
) -> Histogram2D:
    """
    2D histogram of two quantities of ``table``, weighted by ``weight``.

    Args:
        table: Rows the quantities belong to.
        data_x, data_y: Arrays with one value per row, or (name, unit[, scaling]).
        xrange, yrange: (min, max); None bounds are taken from the data.
        nbins: Edge count per axis (N edges -> N-1 bins).
        weight: (name, unit) of the weighting quantity; None counts rows.
        closed: "left" for [a,b) bins, "right" for (a,b].
        mask: None, or one entry per row multiplying the weights.
        mode: "none", "pdf", "density" or "probability".
        resolver: resolver(table, name, unit) -> values.
        verbose: Log the binning at INFO level.

    Raises:
        MaskLengthMismatchError, InvalidModeError, InvalidRangeError
    """
    check_closed(closed)
    check_mode(mode)
    nrows = table.nrows

    x = resolve_data(table, data_x, resolver)
    y = resolve_data(table, data_y, resolver)
    if len(x) != nrows or len(y) != nrows:
        raise ValueError(f"data lengths ({len(x)}, {len(y)}) do not match data-table length: {nrows}")

    gate = check_mask(mask, nrows)

    xedges, yedges, extent, ratio = histogram_binning(x, y, xrange, yrange, nbins, closed, verbose)

    if weight is None:
        w = np.ones(nrows, dtype=np.float64)
    else:
        w = np.asarray(resolver(table, weight[0], weight[1]), dtype=np.float64)
    if gate is not None:
        w = w * gate

    counts = fit_histogram2d(x, y, xedges, yedges, w, closed)
    counts = normalize(counts, (xedges, yedges), mode)

    return Histogram2D(
        weights=counts,
        xedges=xedges,
        yedges=yedges,
        closed=closed,
        weight=tuple(weight) if weight is not None else ("count", "standard"),
        nbins=(int(nbins[0]), int(nbins[1])),
        extent=extent,
        ratio=ratio,
        mode=mode,
    )


def _time_edges(tmin: float, tmax: float, tbinsize: Optional[float], tbins: Optional[int]) -> np.ndarray:
    if tbins is not None:
        return np.linspace(tmin, tmax, int(tbins))

    step = HISTOGRAM_DEFAULTS["sfr_tbinsize"] if tbinsize is None else float(tbinsize)
    if step <= 0.0:
        raise ValueError(f"tbinsize must be > 0, got {step}")
    # start:step:stop, stop included when it lies on the grid
    nsteps = int(math.floor((tmax - tmin) / step + 1e-9))
    return tmin + step * np.arange(nsteps + 1)


def sfr_histogram(
    table: AMRTable,
    trange: Bounds = (0.0, None),
    tbinsize: Optional[float] = None,
    tbins: Optional[int] = None,
    closed: str = HISTOGRAM_DEFAULTS["closed"],
    mask=None,
    mode: str = HISTOGRAM_DEFAULTS["mode"],
    resolver: Resolver = getvar,
    verbose: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Star formation rate over birth time for a particle table.

    Birth times are binned in Myr, either with a fixed step ``tbinsize``
    (default 2 Myr) or ``tbins`` evenly spaced edges (``tbins`` wins). Rows with
    ``birth <= 0`` are not newly formed stars and carry no weight.

    Returns:
        (time axis [Myr] = left bin edges, SFR [Msol/yr])
    """
    check_closed(closed)
    check_mode(mode)

    birth = np.asarray(resolver(table, "birth", "Myr"), dtype=np.float64)
    mass = np.asarray(resolver(table, "mass", "Msol"), dtype=np.float64)
    massweight = np.where(birth > 0.0, mass, 0.0)

    gate = check_mask(mask, table.nrows)
    if gate is not None:
        massweight = massweight * gate

    tmin = 0.0 if trange[0] is None else float(trange[0])
    if trange[1] is not None:
        tmax = float(trange[1])
    elif birth.size:
        tmax = float(np.nanmax(birth))
    else:
        raise ValueError("cannot derive the upper time bound from an empty table")
    if tmin > tmax:
        raise InvalidRangeError(f"tmin > tmax ({tmin:.7g} > {tmax:.7g})")

    edges = _time_edges(tmin, tmax, tbinsize, tbins)
    if len(edges) < 2:
        raise ValueError(f"time range {tmin}:{tmax} yields fewer than 2 bin edges")

    level = diagnostic_level(verbose)
    logger.log(level, "bin interval %s-closed:", closed)
    logger.log(level, "trange: %.6g:%.6g [Myr]  -> edges: %d", edges[0], edges[-1], len(edges))

    sfh = histogram1d(birth, edges, massweight, closed)
    sfh = normalize(sfh, (edges,), mode)
    hstep = edges[1] - edges[0]

    return edges[:-1], sfh / 1e6 / hstep
