"""CLI entry point for the node health-check harness."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from node_health.formatter import Formatter
from node_health.models.config import TESTDIR_ENV, RunConfiguration
from node_health.runner import EXIT_CONFIG_ERROR, Orchestrator
from node_health.settings import SETTINGS_ENV, load_settings

log = logging.getLogger("node_health")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="node-health",
        description="Run diagnostic tests and report node health",
    )
    parser.add_argument(
        "tests",
        nargs="*",
        help="Names of tests to run (default: every test in the test directory)",
    )
    parser.add_argument(
        "-d",
        "--test-dir",
        type=Path,
        help=f"Directory holding test executables (env: {TESTDIR_ENV})",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        help="Number of tests to run concurrently",
    )
    parser.add_argument(
        "--suffix",
        help="Filename suffix identifying test executables",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help=f"YAML settings file (env: {SETTINGS_ENV})",
    )
    parser.add_argument(
        "-f",
        "--first-fail",
        action="store_true",
        help="Stop the run at the first failing test",
    )
    parser.add_argument(
        "-s",
        "--sanity",
        action="store_true",
        help="Run only the quick sanity subset of each test",
    )
    parser.add_argument(
        "--forever",
        action="store_true",
        help="Repeat the run until interrupted",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q",
        "--quiet",
        dest="verbosity",
        action="store_const",
        const="quiet",
        help="Print nothing; report health through the exit code only",
    )
    verbosity.add_argument(
        "-F",
        "--failures-only",
        dest="verbosity",
        action="store_const",
        const="failures",
        help="Print only failing tests",
    )
    verbosity.add_argument(
        "-v",
        "--verbose",
        dest="verbosity",
        action="store_const",
        const="verbose",
        help="Also print the output of every test as it runs",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-l",
        "--list",
        dest="mode",
        action="store_const",
        const="describe",
        help="Describe each test instead of running it",
    )
    mode.add_argument(
        "--emit-config",
        dest="mode",
        action="store_const",
        const="emit-config",
        help="Print each test's prototype configuration",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> Mapping[str, Any]:
    """Configuration values given explicitly on the command line."""
    values: dict[str, Any] = {}
    if args.tests:
        values["tests"] = tuple(args.tests)
    if args.test_dir is not None:
        values["test_dir"] = args.test_dir
    if args.jobs is not None:
        values["jobs"] = args.jobs
    if args.suffix is not None:
        values["suffix"] = args.suffix
    if args.verbosity is not None:
        values["verbosity"] = args.verbosity
    if args.mode is not None:
        values["mode"] = args.mode
    if args.no_color:
        values["color"] = False
    for flag in ("first_fail", "sanity", "forever"):
        if getattr(args, flag):
            values[flag] = True
    return values


def build_configuration(
    args: argparse.Namespace, environ: Mapping[str, str] = os.environ
) -> RunConfiguration:
    """Merge the settings file (if any) with command-line values.

    Raises:
        FileNotFoundError: If the settings file does not exist
        ValueError: If the settings file or the merged values are invalid

    """
    values: dict[str, Any] = {}
    settings_path = args.config or environ.get(SETTINGS_ENV)
    if settings_path:
        values.update(load_settings(Path(settings_path)))
    values.update(cli_overrides(args))
    return RunConfiguration.model_validate(values)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbosity == "verbose" else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = build_configuration(args)
    except (OSError, ValueError) as e:
        log.error("Invalid configuration: %s", e)
        sys.exit(EXIT_CONFIG_ERROR)

    orchestrator = Orchestrator(config=config, formatter=Formatter.from_config(config))
    try:
        exit_code = asyncio.run(orchestrator.run())
    except KeyboardInterrupt:
        log.warning("Interrupted after %d run(s)", orchestrator.completed_runs)
        exit_code = orchestrator.exit_code
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
