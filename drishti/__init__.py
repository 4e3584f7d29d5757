# -*- coding: utf-8 -*-

"""

Drishti: subregions, histograms and parallel projections of RAMSES AMR data
===========================================================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Drishti works on column-oriented snapshots (AMRTable) of RAMSES simulations:
AMR hydro/gravity cells addressed by integer cell indices and refinement level,
or particles/clumps with physical positions. It cuts out subregions (cuboid,
cylinder, sphere and their shells, or the complement of any of them), builds
weighted 1D/2D histograms, and projects variables onto 2D maps with a
work-stealing thread pool that splits the work by refinement level.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- AMR data mixes cells of very different sizes; selecting "everything inside
  this region" must compare against bounds scaled to each cell's level.
- Projection cost is dominated by the finest levels, so static splitting by
  level leaves threads idle. Stealing keeps every worker busy.

"""

from .config import __version__, resolve_workers, setup_logging
from .errors import (
    DataTypeUnavailableError,
    DrishtiError,
    InvalidModeError,
    InvalidRangeError,
    InvalidShapeParamsError,
    LevelOutOfBoundsError,
    MaskLengthMismatchError,
    ProjectionCancelled,
    UnknownUnitError,
    UnknownVariableError,
)
from .types import AMRTable, Histogram2D, NormalizedRange, ProjectionMaps, SimInfo
from .checks import checkfortype, checklevelmax, checkuniformgrid
from .variables import getunit, getvar
from .ranges import prep_ranges, prep_shape_ranges, prep_shell_ranges
from .regions import shellregion, subregion
from .histogram import histogram1d, histogram2d, sfr_histogram
from .workqueue import WorkQueue, WorkQueuePool
from .projection import ParallelProjectionEngine, estimate_projection_speedup, projection
from .io import load_maps, read_hydro, read_info, save_maps
from .cache import MetadataCache, getinfo_cached
