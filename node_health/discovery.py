"""Resolve the ordered set of diagnostic tests to run."""

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from node_health.models.config import RunConfiguration
from node_health.models.test import InvocationMode, Test

log = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the set of tests cannot be resolved; nothing is run."""


class TestNotFoundError(DiscoveryError):
    """Raised when explicitly named tests do not exist or are unreadable."""

    __test__ = False


class TestDirectoryError(DiscoveryError):
    """Raised when the test directory cannot be listed."""

    __test__ = False


def discover_tests(config: RunConfiguration) -> Sequence[Test]:
    """Return the tests to run, in the order they must be reported.

    Explicit names are kept in the order given. Otherwise every file in the
    test directory carrying the configured suffix is used, sorted by filename.

    Raises:
        TestNotFoundError: If any explicitly named test cannot be resolved
        TestDirectoryError: If the test directory does not exist

    """
    if config.tests:
        paths = resolve_named_tests(config.test_dir, config.tests, config.suffix)
    else:
        paths = scan_test_dir(config.test_dir, config.suffix)

    tests = build_tests(paths, config.suffix, config.invocation_mode)
    log.info("Discovered %d test(s) in %s", len(tests), config.test_dir)
    return tests


def resolve_named_tests(
    test_dir: Path, names: Sequence[str], suffix: str
) -> Sequence[Path]:
    """Resolve each name to ``<test_dir>/<name><suffix>``."""
    paths: list[Path] = []
    missing: list[str] = []

    for name in names:
        filename = name if suffix and name.endswith(suffix) else f"{name}{suffix}"
        path = test_dir / filename
        if path.is_file() and os.access(path, os.R_OK):
            paths.append(path)
        else:
            missing.append(name)

    if missing:
        raise TestNotFoundError(
            f"Test(s) not found in {test_dir}: {', '.join(missing)}"
        )
    return paths


def scan_test_dir(test_dir: Path, suffix: str) -> Sequence[Path]:
    """List regular files ending in ``suffix``, sorted by filename."""
    if not test_dir.is_dir():
        raise TestDirectoryError(f"Test directory not found: {test_dir}")

    return sorted(
        (
            path
            for path in test_dir.iterdir()
            if path.is_file() and path.name.endswith(suffix) and path.name != suffix
        ),
        key=lambda path: path.name,
    )


def build_tests(
    paths: Sequence[Path], suffix: str, mode: InvocationMode
) -> Sequence[Test]:
    """Wrap resolved paths as tests numbered in discovery order."""
    return [
        Test(
            name=path.name.removesuffix(suffix),
            path=path.resolve(),
            index=index,
            mode=mode,
        )
        for index, path in enumerate(paths)
    ]
