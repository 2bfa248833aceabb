"""Run configuration shared by discovery, scheduling and formatting."""

import os
from collections.abc import Sequence
from pathlib import Path
from typing import Literal, Self, TypeAlias

from pydantic import Field, model_validator

from node_health.models.base import Model
from node_health.models.test import InvocationMode

TESTDIR_ENV = "NODE_HEALTH_TESTDIR"
DEFAULT_TEST_DIR = Path("/usr/lib/node-health/tests")
DEFAULT_SUFFIX = ".t"

Verbosity: TypeAlias = Literal["quiet", "failures", "normal", "verbose"]
RunMode: TypeAlias = Literal["run", "describe", "emit-config"]


def default_test_dir() -> Path:
    """Return the test directory from the environment, or the built-in default."""
    if value := os.environ.get(TESTDIR_ENV):
        return Path(value)
    return DEFAULT_TEST_DIR


class RunConfiguration(Model):
    """Immutable settings for one invocation of the harness."""

    test_dir: Path = Field(
        default_factory=default_test_dir, description="Directory holding tests"
    )
    tests: Sequence[str] = Field(
        default=(), description="Explicit test names (empty means scan test_dir)"
    )
    suffix: str = Field(default=DEFAULT_SUFFIX, description="Test file suffix")
    jobs: int = Field(default=1, ge=1, description="Maximum concurrent tests")
    verbosity: Verbosity = "normal"
    color: bool = True
    first_fail: bool = False
    sanity: bool = False
    forever: bool = False
    mode: RunMode = "run"

    @model_validator(mode="after")
    def check_forever_mode(self) -> Self:
        """Forever only applies to diagnostic runs."""
        if self.forever and self.mode != "run":
            raise ValueError(f"forever cannot be combined with {self.mode} mode")
        return self

    @property
    def effective_jobs(self) -> int:
        """Concurrency actually used; config fragments must not interleave."""
        if self.mode == "emit-config":
            return 1
        return self.jobs

    @property
    def invocation_mode(self) -> InvocationMode:
        """How each discovered test executable is invoked."""
        if self.mode != "run":
            return self.mode
        return "sanity" if self.sanity else "normal"
