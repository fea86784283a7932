"""Command line entry point for crystallisation ensembles.

Usage::

    python -m fcensemble.run --config run.yml --override io.outdir=out/test

Exit status is 0 when every member completed, 1 when at least one member
failed in the solver and 2 when the run was rejected before any member ran.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config_utils
from .errors import FCEnsembleError, OutputConflictError
from .oracle import load_oracle
from .orchestrator import run_from_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MEMBER_FAILED = 1
EXIT_REJECTED = 2


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""

    parser = argparse.ArgumentParser(description="Run a fractional or bulk crystallisation ensemble")
    parser.add_argument("--config", type=Path, required=True, help="Path to YAML run file")
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a console progress bar with ETA over ensemble members.",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings (defaults to io.quiet from the run file).",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help=(
            "Apply run-file overrides using dotted paths; e.g. "
            "--override constant_inputs.P=3.0 'variable_inputs.offset=[-1, 1]'"
        ),
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    parser.add_argument("--jobs", type=int, default=None, help="Ensemble members run concurrently")
    args = parser.parse_args(argv)

    override_list: List[str] = []
    if args.overrides_file:
        for override_path in args.overrides_file:
            override_list.extend(config_utils.read_overrides_file(override_path))
    if args.override:
        for group in args.override:
            override_list.extend(group)
    if args.jobs is not None:
        override_list.append(f"jobs={args.jobs}")

    try:
        cfg = config_utils.load_config(args.config, overrides=override_list)
    except (FCEnsembleError, ValueError, OSError) as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Invalid run file %s: %s", args.config, exc)
        return EXIT_REJECTED

    quiet = cfg.io.quiet if args.quiet is None else args.quiet
    config_utils.configure_logging(logging.WARNING if quiet else logging.INFO, suppress_warnings=quiet)

    try:
        oracle = load_oracle(cfg.oracle.entrypoint)
        report = run_from_config(
            cfg,
            oracle,
            progress=True if args.progress else None,
            config_path=args.config,
        )
    except OutputConflictError as exc:
        logger.error("%s", exc)
        return EXIT_REJECTED
    except FCEnsembleError as exc:
        logger.error("Ensemble rejected: %s", exc)
        return EXIT_REJECTED

    print(
        f"{len(report.completed)} completed, {len(report.failed)} failed; results in {report.outdir}"
    )
    for identifier in report.failed:
        print(f"  failed: {identifier}")
    return EXIT_OK if report.ok else EXIT_MEMBER_FAILED


if __name__ == "__main__":
    sys.exit(main())
