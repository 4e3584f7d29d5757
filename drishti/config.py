# -*- coding: utf-8 -*-

"""

Defaults and logging setup for drishti.

The dictionaries below are the values used when a caller does not pass the
corresponding keyword. Edit them here rather than in the individual modules.

"""

from __future__ import annotations

import logging
import os
from typing import Optional

__version__ = "1.0.0"

logger = logging.getLogger("drishti")


# ─────────────────────────────────────────────────────────────────────────────
# Defaults
# ─────────────────────────────────────────────────────────────────────────────

HISTOGRAM_DEFAULTS = {
    "nbins": (100, 100),  # edges per axis, i.e. 99 x 99 bins
    "weight": ("mass", "Msol"),
    "closed": "left",
    "mode": "none",
    "sfr_tbinsize": 2.0,  # Myr
}

PROJECTION_DEFAULTS = {
    "res": 256,  # pixels per map axis
    "direction": "z",
    "weighting": ("mass", "Msol"),
    "range_unit": "standard",
}

CLOSED_SIDES = ("left", "right")
NORMALIZATION_MODES = ("none", "pdf", "density", "probability")
BOX_CENTER_MARKERS = ("bc", "boxcenter")

WORKERS_ENV = "DRISHTI_WORKERS"


def resolve_workers(workers: Optional[int] = None) -> int:
    """
    Worker count for the projection engine.

    An explicit positive value wins, then the DRISHTI_WORKERS environment
    variable, then the number of available CPUs.
    """
    if workers is not None and workers > 0:
        return int(workers)

    env = os.environ.get(WORKERS_ENV, "").strip()
    if env:
        try:
            value = int(env)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", WORKERS_ENV, env)
        else:
            if value > 0:
                return value

    return os.cpu_count() or 1


# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries (adjustable)
    logging.getLogger("h5py").setLevel(logging.WARNING)


def diagnostic_level(verbose: bool) -> int:
    """Level used for human-readable summaries: INFO when verbose, else DEBUG."""
    return logging.INFO if verbose else logging.DEBUG
