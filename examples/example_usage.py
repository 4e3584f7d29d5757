#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

─────────────────────────────────────────────────────────────
Example Usage of Drishti
─────────────────────────────────────────────────────────────

This script walks through one RAMSES snapshot:

1. Reading (cached) metadata and checking what the output holds
2. Cutting a sphere and a cylindrical shell around the box center
3. Building a density-temperature style 2D histogram
4. Projecting surface density and mean density on several threads
5. Saving the maps to HDF5

─────────────────────────────────────────────────────────────

"""

import numpy as np

from drishti import (
    MetadataCache,
    ParallelProjectionEngine,
    checkfortype,
    estimate_projection_speedup,
    getinfo_cached,
    histogram2d,
    projection,
    read_hydro,
    save_maps,
    setup_logging,
    shellregion,
    subregion,
)

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

RAMSES_OUTPUT_ROOT = "ramses_outputs/sedov_3d"

OUTPUT_NUMBER = 1

WORKERS = 4

MAP_FILE = "example_projection.h5"


# ──────────────────────────────────────────────────────────────
# Main Example Workflow
# ──────────────────────────────────────────────────────────────

def main():

    setup_logging(verbose=False)
    print("=== Drishti Example Usage ===\n")

    with MetadataCache() as cache:
        info = getinfo_cached(cache, OUTPUT_NUMBER, RAMSES_OUTPUT_ROOT)
        checkfortype(info, "hydro")
        print(f"Output {OUTPUT_NUMBER}: levels {info.levelmin}..{info.levelmax}, datatypes {info.data_types}")

        gas = read_hydro(OUTPUT_NUMBER, RAMSES_OUTPUT_ROOT, info=info)
        print(f"Loaded {gas.nrows} cells")

        core = subregion(gas, shape="sphere", radius=0.1, center=("bc",), verbose=True)
        shell = shellregion(gas, shape="cylinder", radius=(0.1, 0.2), height=0.05, center=("bc",))
        print(f"Sphere: {core.nrows} cells, cylindrical shell: {shell.nrows} cells")

        hist = histogram2d(
            gas,
            ("rho", "standard", "log10"),
            ("p", "standard", "log10"),
            nbins=(64, 64),
            weight=("mass", "standard"),
            mode="probability",
        )
        print(f"Histogram total (probability mode): {hist.total:.3f}")

        levels = np.unique(gas["level"])
        print(f"Expected speedup on {WORKERS} threads: "
              f"{estimate_projection_speedup(gas.nrows, len(levels), 2, WORKERS)}x")

        engine = ParallelProjectionEngine(workers=WORKERS)
        maps = projection(gas, ["sd", "rho"], res=256, weighting=("mass", "standard"), engine=engine)
        print(f"Projection took {maps.stats['last_projection_time']:.2f}s with {maps.stats['steals']} steal(s)")

        save_maps(maps, MAP_FILE)
        print(f"Maps written to {MAP_FILE}")

        print(f"Cache: {cache.stats()}")


# ──────────────────────────────────────────────────────────────
# Entry Point
# ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
