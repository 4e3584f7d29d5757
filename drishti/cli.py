#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START (copy–paste, then tweak)
──────────────────────────────────────────────────────────────────────────────
Project the gas surface density of a few outputs:

    drishti \
        --base-dir ./simulations \
        --folder-name galaxy_run \
        --numbers 1,3,5 \
        --vars sd,rho --units Msol_pc2,g_cm3 \
        --direction z --res 512 \
        --x-range 0.25:0.75 --y-range 0.25:0.75 --z-range 0.45:0.55 \
        --workers 8 \
        --verbose

Dry-run: read the metadata and print the plan, but don't load cells or write maps

    drishti --base-dir ./simulations --folder-name galaxy_run -n 5 --dry-run

Required args:

    --base-dir         Path to your RAMSES run root directory.
    --folder-name      Subfolder inside base-dir containing the output_NNNNN folders.
    -n / --numbers     Output numbers to process. Formats:
                       "7" or "3,5,9" or "10-15"

Optional args:

    --vars             Comma-separated variables to project (default: sd)
    --units            One unit for all variables or one per variable
    --direction        Line of sight x, y or z (default: z)
    --res              Pixels per map axis (default: 256)
    --x-range / --y-range / --z-range   Normalized ranges [0,1] over box length
    --workers          Projection threads (default: $DRISHTI_WORKERS or CPU count)
    --output-prefix / -o   Prefix for output files (default: projection)
    --output-dir       Where to write the .h5 maps (default: current directory)
    --verbose          step-by-step narration
    --dry-run          Run everything except loading cells and writing maps

One .h5 file per output is written (see drishti.io.save_maps). A snapshot that
fails is logged and skipped; the remaining ones are still processed.

"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional, Tuple

from .cache import MetadataCache, getinfo_cached
from .config import PROJECTION_DEFAULTS, setup_logging
from .io import read_hydro, save_maps
from .projection import PLANES, ParallelProjectionEngine, projection

logger = logging.getLogger("drishti")


# ─────────────────────────────────────────────────────────────────────────────
# Argument parsers
# ─────────────────────────────────────────────────────────────────────────────

def _output_token(token: str) -> List[int]:
    start, sep, end = token.partition("-")
    try:
        first = int(start)
        last = int(end) if sep else first
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid output number or range: '{token}'") from None
    if last < first:
        raise argparse.ArgumentTypeError(f"Range '{token}' ends before it starts.")
    return list(range(first, last + 1))


def parse_output_numbers(arg: str) -> List[int]:
    """
    Output numbers from '5', '1,3,5', '2-7' or a mix such as '1,4-6'.

    Duplicates are dropped; the order of first appearance is kept.

    Raises:
        argparse.ArgumentTypeError on invalid format.
    """
    tokens = [t.strip() for t in arg.split(",") if t.strip()]
    if not tokens:
        raise argparse.ArgumentTypeError("No output numbers given.")

    numbers: List[int] = []
    for token in tokens:
        numbers.extend(n for n in _output_token(token) if n not in numbers)
    return numbers


def _norm_bound(text: str, arg: str) -> Optional[float]:
    text = text.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Axis bounds must be numbers, got '{arg}'.") from None
    if not 0.0 <= value <= 1.0:
        raise argparse.ArgumentTypeError(f"Normalized bound {value} is outside [0, 1].")
    return value


def parse_norm_range(arg: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    Normalized axis range 'min:max'; either side may be left out (':max',
    'min:', ':').

    An omitted side is None, i.e. the full extent of the data on that side.
    """
    if arg is None or not arg.strip():
        return (None, None)
    if ":" not in arg:
        raise argparse.ArgumentTypeError("Axis range must be 'min:max' (e.g. 0.2:0.8, :0.6, 0.1:, :).")

    left, right = arg.split(":", 1)
    lo, hi = _norm_bound(left, arg), _norm_bound(right, arg)
    if lo is not None and hi is not None and lo > hi:
        raise argparse.ArgumentTypeError(f"Axis min {lo} is greater than axis max {hi}.")
    return (lo, hi)


def parse_list_arg(arg: Optional[str]) -> Optional[List[str]]:
    """Comma-separated names; None when nothing was given."""
    if arg is None:
        return None
    items = [f.strip() for f in arg.split(",") if f.strip() != ""]
    return items if items else None


def positive_int(val: str) -> int:
    try:
        iv = int(val)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer value: {val}") from None
    if iv < 1:
        raise argparse.ArgumentTypeError(f"Invalid value: {val}. Must be >= 1.")
    return iv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parallel projections of RAMSES AMR outputs")

    # Required inputs
    parser.add_argument("--base-dir", type=str, required=True, help="Base directory containing simulation folders (REQUIRED)")
    parser.add_argument("--folder-name", type=str, required=True, help="Folder inside base_dir holding output_NNNNN folders (REQUIRED)")
    parser.add_argument("-n", "--numbers", type=parse_output_numbers, required=True, help="Output numbers like '1', '1,3,5', '2-7' or '1,4-6' (REQUIRED)")

    # What to project
    parser.add_argument("--vars", type=parse_list_arg, default=None, help="Comma-separated variables to project (default: sd).")
    parser.add_argument("--units", type=parse_list_arg, default=None, help="Comma-separated units, one for all variables or one per variable.")
    parser.add_argument("--direction", choices=sorted(PLANES), default=PROJECTION_DEFAULTS["direction"], help="Line of sight (default: z).")
    parser.add_argument("--res", type=positive_int, default=PROJECTION_DEFAULTS["res"], help="Pixels per map axis (default: 256).")

    # Normalized ranges (single arg per axis)
    parser.add_argument("--x-range", type=parse_norm_range, default=None, help="Normalized x range 'min:max' (e.g., 0.2:0.8, :0.7, 0.1:, :).")
    parser.add_argument("--y-range", type=parse_norm_range, default=None, help="Normalized y range 'min:max'.")
    parser.add_argument("--z-range", type=parse_norm_range, default=None, help="Normalized z range 'min:max'.")

    parser.add_argument("--workers", type=positive_int, default=None, help="Projection worker threads.")

    # Output
    parser.add_argument("-o", "--output-prefix", dest="output_prefix", default="projection", help="Output file prefix (default: projection)")
    parser.add_argument("--output-dir", type=str, default=".", help="Directory for the .h5 maps (default: current directory)")

    # Utility flags
    parser.add_argument("--dry-run", action="store_true", help="Print plan without loading cells or writing files.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")
    return parser


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse CLI args and project every requested output.

    Returns:
        Process exit status: 0 when the run completed (individual snapshot
        failures are logged), 1 when the input folder does not exist.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    input_folder = os.path.join(os.path.abspath(args.base_dir), args.folder_name)
    if not os.path.exists(input_folder):
        logger.error("Input folder not found: %s", input_folder)
        return 1

    variables = args.vars or ["sd"]
    units = args.units
    if units is not None and len(units) not in (1, len(variables)):
        parser.error(f"--units needs 1 or {len(variables)} entries, got {len(units)}")

    engine = ParallelProjectionEngine(args.workers)
    os.makedirs(args.output_dir, exist_ok=True)

    logger.info("Projecting %s of outputs %s on %d worker(s)", variables, args.numbers, engine.workers)

    with MetadataCache() as cache:
        for num in args.numbers:
            try:
                info = getinfo_cached(cache, num, input_folder)
                filename = os.path.join(args.output_dir, f"{args.output_prefix}_{num:05d}.h5")

                if args.dry_run:
                    logger.info(
                        "[dry-run] Would write '%s' with %s along %s at %dx%d (levels %d..%d)",
                        filename,
                        variables,
                        args.direction,
                        args.res,
                        args.res,
                        info.levelmin,
                        info.levelmax,
                    )
                    continue

                table = read_hydro(num, input_folder, info=info)
                maps = projection(
                    table,
                    variables,
                    units=units,
                    res=args.res,
                    direction=args.direction,
                    xrange=args.x_range,
                    yrange=args.y_range,
                    zrange=args.z_range,
                    engine=engine,
                    verbose=args.verbose,
                )
                save_maps(maps, filename)
                logger.info(
                    "DONE: output %d in %.2fs (%d steals)",
                    num,
                    maps.stats["last_projection_time"],
                    maps.stats["steals"],
                )
            except Exception as e:
                logger.exception("Failed to project output %s: %s", num, e)

    return 0


if __name__ == "__main__":
    sys.exit(main())
