"""Models for parsed test outcomes and run aggregates."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, TypeAlias

from node_health.models.test import Test

Directive: TypeAlias = Literal["SKIP", "TODO"]
OutcomeStatus: TypeAlias = Literal["ok", "not ok", "skipped"]


@dataclass(frozen=True, kw_only=True)
class Plan:
    """A ``1..N`` plan line."""

    count: int
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class Diagnostic:
    """A ``#`` comment line, kept verbatim."""

    text: str


@dataclass(frozen=True, kw_only=True)
class BailOut:
    """A ``Bail out!`` line."""

    reason: str


@dataclass(frozen=True, kw_only=True)
class TapOutcome:
    """One ``ok`` / ``not ok`` result.

    Synthetic outcomes are produced by the harness itself (plan mismatch,
    bail-out, cancellation, spawn failure) rather than read from the test.
    """

    number: int
    passed: bool
    description: str = ""
    directive: Directive | None = None
    reason: str = ""
    synthetic: bool = False

    @property
    def status(self) -> OutcomeStatus:
        if self.directive == "SKIP":
            return "skipped"
        return "ok" if self.passed else "not ok"

    @property
    def failed(self) -> bool:
        """Whether this outcome counts against the run."""
        return not self.passed and self.directive is None

    def __str__(self) -> str:
        text = f"{'ok' if self.passed else 'not ok'} {self.number}"
        if self.description:
            text += f" - {self.description}"
        if self.directive:
            text += f" # {self.directive}"
            if self.reason:
                text += f" {self.reason}"
        return text


TapEvent: TypeAlias = Plan | TapOutcome | Diagnostic | BailOut


@dataclass(frozen=True, kw_only=True)
class TapResult:
    """Everything parsed from one test's output plus its exit status.

    ``exit_status`` is ``None`` when the executable could not be started.
    """

    outcomes: Sequence[TapOutcome]
    plan: int | None
    exit_status: int | None
    diagnostics: Sequence[str] = ()
    bail_out: str | None = None
    cancelled: bool = False

    @property
    def failures(self) -> Sequence[TapOutcome]:
        return [outcome for outcome in self.outcomes if outcome.failed]

    @property
    def failed(self) -> bool:
        return (
            bool(self.failures) or self.exit_status != 0 or self.bail_out is not None
        )

    @property
    def failure_reason(self) -> str:
        """One-line reason this result failed."""
        if self.failures:
            return str(self.failures[0])
        if self.bail_out is not None:
            return f"bailed out: {self.bail_out}"
        return f"exited with status {self.exit_status}"


@dataclass(frozen=True, kw_only=True)
class TestReport:
    """A completed (or cancelled) test and its result."""

    __test__ = False

    test: Test
    result: TapResult

    @property
    def failed(self) -> bool:
        return self.result.failed


@dataclass(frozen=True, kw_only=True)
class Aggregate:
    """Run-level summary, with reports in discovery order."""

    reports: Sequence[TestReport]
    not_run: Sequence[Test] = ()
    aborted: str | None = None

    @property
    def total(self) -> int:
        return len(self.reports)

    @property
    def failed_tests(self) -> Sequence[str]:
        return [report.test.name for report in self.reports if report.failed]

    @property
    def failed(self) -> int:
        return len(self.failed_tests)

    @property
    def has_errors(self) -> bool:
        return any(report.failed for report in self.reports)
