"""Fixtures for integration tests that run real child processes."""

from pathlib import Path
from typing import Protocol

import pytest

from node_health.testing.listener import RecordingListener


class WriteTestFn(Protocol):
    """Protocol for test executable creation function."""

    def __call__(self, name: str, body: str, *, executable: bool = True) -> Path:
        """Write a shell test script and return its path."""


@pytest.fixture
def tests_dir(tmp_path: Path) -> Path:
    """Create an empty test directory."""
    directory = tmp_path / "tests.d"
    directory.mkdir()
    return directory


@pytest.fixture
def write_test(tests_dir: Path) -> WriteTestFn:
    """Return a function that writes ``/bin/sh`` test scripts."""

    def _write(name: str, body: str, *, executable: bool = True) -> Path:
        path = tests_dir / f"{name}.t"
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(0o755 if executable else 0o644)
        return path

    return _write


@pytest.fixture
def listener() -> RecordingListener:
    """Create a recording listener."""
    return RecordingListener()
