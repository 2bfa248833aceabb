"""Tests for test discovery."""

from pathlib import Path

import pytest

from node_health.discovery import (
    DiscoveryError,
    TestDirectoryError,
    TestNotFoundError,
    discover_tests,
)
from node_health.models.config import RunConfiguration


@pytest.fixture
def tests_dir(tmp_path: Path) -> Path:
    """Create a test directory with a few tests and some noise."""
    for name in ("memory.t", "cpu.t", "Disk.t", "network.t", "README", "notes.txt"):
        (tmp_path / name).write_text("#!/bin/sh\n")
    (tmp_path / "subdir.t").mkdir()
    return tmp_path


def test_scans_directory_in_filename_order(tests_dir: Path) -> None:
    """Lists every suffixed file, sorted by filename."""
    tests = discover_tests(RunConfiguration(test_dir=tests_dir))

    assert [test.name for test in tests] == ["Disk", "cpu", "memory", "network"]
    assert [test.index for test in tests] == [0, 1, 2, 3]
    assert tests[1].path == (tests_dir / "cpu.t").resolve()


def test_scan_is_repeatable(tests_dir: Path) -> None:
    """Repeated discovery yields the same order."""
    config = RunConfiguration(test_dir=tests_dir)

    assert discover_tests(config) == discover_tests(config)


def test_custom_suffix(tests_dir: Path) -> None:
    """Only files with the configured suffix are tests."""
    tests = discover_tests(RunConfiguration(test_dir=tests_dir, suffix=".txt"))

    assert [test.name for test in tests] == ["notes"]


def test_empty_directory(tmp_path: Path) -> None:
    """An empty directory yields no tests."""
    assert discover_tests(RunConfiguration(test_dir=tmp_path)) == []


def test_missing_directory_is_fatal(tmp_path: Path) -> None:
    """A missing test directory raises."""
    with pytest.raises(TestDirectoryError, match="Test directory not found"):
        discover_tests(RunConfiguration(test_dir=tmp_path / "missing"))


def test_named_tests_keep_given_order(tests_dir: Path) -> None:
    """Explicit names resolve in the order given."""
    tests = discover_tests(
        RunConfiguration(test_dir=tests_dir, tests=["network", "cpu.t"])
    )

    assert [test.name for test in tests] == ["network", "cpu"]
    assert [test.path.name for test in tests] == ["network.t", "cpu.t"]


def test_unknown_named_tests_are_fatal(tests_dir: Path) -> None:
    """Every unresolved name is reported and nothing is returned."""
    config = RunConfiguration(test_dir=tests_dir, tests=["cpu", "gpu", "fpga"])

    with pytest.raises(TestNotFoundError) as exc_info:
        discover_tests(config)

    assert "gpu, fpga" in str(exc_info.value)
    assert isinstance(exc_info.value, DiscoveryError)


def test_directory_named_like_test_is_not_found(tests_dir: Path) -> None:
    """Names must resolve to regular files."""
    with pytest.raises(TestNotFoundError):
        discover_tests(RunConfiguration(test_dir=tests_dir, tests=["subdir"]))


@pytest.mark.parametrize(
    ("overrides", "mode"),
    [
        ({}, "normal"),
        ({"sanity": True}, "sanity"),
        ({"mode": "describe"}, "describe"),
        ({"mode": "emit-config", "sanity": True}, "emit-config"),
    ],
)
def test_invocation_mode(
    tests_dir: Path, overrides: dict[str, object], mode: str
) -> None:
    """Tests carry the invocation mode of the configuration."""
    config = RunConfiguration.model_validate({"test_dir": tests_dir, **overrides})

    assert {test.mode for test in discover_tests(config)} == {mode}
