"""Render run progress and results for the terminal."""

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TextIO

from node_health.models.config import RunConfiguration, Verbosity
from node_health.models.result import Aggregate, TestReport
from node_health.models.test import Test

RESET = "\x1b[0m"
COLORS: Mapping[str, str] = {
    "ok": "\x1b[32m",
    "not ok": "\x1b[31m",
    "aborted": "\x1b[33m",
}


@dataclass(frozen=True, kw_only=True)
class Formatter:
    """Writes scheduler events to ``stream`` according to verbosity.

    quiet writes nothing, failures writes one line per failing test, normal
    writes one line per finished test plus a summary, and verbose also relays
    every line of test output as it arrives.
    """

    verbosity: Verbosity = "normal"
    color: bool = False
    stream: TextIO = field(default_factory=lambda: sys.stdout)

    @classmethod
    def from_config(
        cls, config: RunConfiguration, stream: TextIO | None = None
    ) -> "Formatter":
        """Build a formatter; color is only used on interactive terminals."""
        stream = stream if stream is not None else sys.stdout
        return cls(
            verbosity=config.verbosity,
            color=config.color and stream.isatty(),
            stream=stream,
        )

    def test_started(self, test: Test) -> None:
        pass

    def output(self, test: Test, line: str) -> None:
        if self.verbosity == "verbose":
            self._write(f"[{test.name}] {line}")

    def test_finished(self, report: TestReport) -> None:
        name = report.test.name
        status = "not ok" if report.failed else "ok"

        if self.verbosity == "failures":
            if report.failed:
                reason = describe_failure(report)
                self._write(f"{name}: {self._paint(status)} - {reason}")
            return

        if self.verbosity in ("normal", "verbose"):
            self._write(f"{name}: {self._paint(status)}")
            for outcome in report.result.failures:
                self._write(f"  {outcome}")

    def passthrough(self, test: Test, line: str) -> None:
        if self.verbosity == "quiet":
            return
        if test.mode == "describe":
            self._write(f"{test.name}: {line}")
        else:
            self._write(line)

    def summary(self, aggregate: Aggregate) -> None:
        """Write the end-of-run report."""
        if self.verbosity == "quiet":
            return
        if aggregate.aborted:
            self._write(f"{self._paint('aborted')}: {aggregate.aborted}")
        if self.verbosity == "failures":
            return

        if aggregate.not_run:
            names = ", ".join(test.name for test in aggregate.not_run)
            self._write(f"Not run: {names}")

        line = f"{aggregate.total} tests, {aggregate.failed} failed"
        if aggregate.failed_tests:
            line += f": {', '.join(aggregate.failed_tests)}"
        self._write(line)

    def _paint(self, status: str) -> str:
        if not self.color or status not in COLORS:
            return status
        return f"{COLORS[status]}{status}{RESET}"

    def _write(self, line: str) -> None:
        self.stream.write(f"{line}\n")
        self.stream.flush()


def describe_failure(report: TestReport) -> str:
    """One-line reason a test failed."""
    return report.result.failure_reason
