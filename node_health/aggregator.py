"""Merge per-test results into a run-level aggregate."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from node_health.models.result import Aggregate, TestReport
from node_health.models.test import Test


@dataclass(kw_only=True)
class Aggregator:
    """Collects reports from concurrently finishing jobs.

    Reports may arrive in any order; ``summarize`` always lists them in
    discovery order by each test's index.
    """

    tests: Sequence[Test]
    _reports: dict[int, TestReport] = field(default_factory=dict, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    async def record(self, report: TestReport) -> None:
        """Store a finished test's report."""
        async with self._lock:
            if report.test.index in self._reports:
                raise ValueError(f"Duplicate report for test {report.test.name}")
            self._reports[report.test.index] = report

    def summarize(self, aborted: str | None = None) -> Aggregate:
        reports = [
            self._reports[test.index]
            for test in self.tests
            if test.index in self._reports
        ]
        not_run = [test for test in self.tests if test.index not in self._reports]
        return Aggregate(reports=reports, not_run=not_run, aborted=aborted)
