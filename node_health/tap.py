"""Incremental parser for the Test Anything Protocol."""

import logging
import re

from node_health.models.result import (
    BailOut,
    Diagnostic,
    Directive,
    Plan,
    TapEvent,
    TapOutcome,
    TapResult,
)

log = logging.getLogger(__name__)

PLAN_RE = re.compile(r"^1\.\.(?P<count>\d+)\s*(?:#\s*(?P<reason>.*))?$")
RESULT_RE = re.compile(
    r"^(?P<not>not )?ok\b"
    r"(?:\s+(?P<number>\d+))?"
    r"(?:\s*-)?\s*"
    r"(?P<description>.*?)"
    r"(?:\s*#\s*(?P<directive>skip|todo)\S*(?:\s+(?P<reason>.*?))?)?\s*$",
    re.IGNORECASE,
)
BAIL_OUT_RE = re.compile(r"^Bail out!\s*(?P<reason>.*?)\s*$")


class TapParser:
    """Parses the merged output of a single test, one line at a time.

    Lines are fed as they arrive; ``finish`` is called once the stream is
    drained and the process has exited. Malformed input never raises: lines
    that are not TAP are treated as plain output, and count problems become a
    synthetic failing outcome.
    """

    def __init__(self) -> None:
        self._outcomes: list[TapOutcome] = []
        self._diagnostics: list[str] = []
        self._plan: int | None = None
        self._bail_out: str | None = None

    @property
    def bailed_out(self) -> bool:
        return self._bail_out is not None

    def feed(self, line: str) -> TapEvent | None:
        """Parse one line; return the recognised event, if any."""
        if self.bailed_out:
            return None
        line = line.rstrip("\r\n")

        if match := RESULT_RE.match(line):
            return self._add_outcome(match)

        if match := PLAN_RE.match(line):
            plan = Plan(count=int(match["count"]), reason=match["reason"] or "")
            if self._plan is not None:
                log.warning("Ignoring repeated plan %r", line)
                return None
            self._plan = plan.count
            return plan

        if match := BAIL_OUT_RE.match(line):
            self._bail_out = match["reason"]
            return BailOut(reason=match["reason"])

        if line.startswith("#"):
            self._diagnostics.append(line)
            return Diagnostic(text=line)

        return None

    def _add_outcome(self, match: re.Match[str]) -> TapOutcome:
        number = int(match["number"]) if match["number"] else len(self._outcomes) + 1
        directive: Directive | None = None
        if match["directive"]:
            directive = "SKIP" if match["directive"].upper() == "SKIP" else "TODO"

        outcome = TapOutcome(
            number=number,
            passed=match["not"] is None,
            description=match["description"],
            directive=directive,
            reason=match["reason"] or "",
        )
        self._outcomes.append(outcome)
        return outcome

    def finish(self, exit_status: int | None, *, cancelled: bool = False) -> TapResult:
        """Close the stream and build the final result."""
        outcomes = list(self._outcomes)
        seen = len(outcomes)

        if self._bail_out is not None:
            description = "bailed out"
            if self._bail_out:
                description += f": {self._bail_out}"
            if self._plan is None:
                outcomes.append(_synthetic(seen + 1, description))
            else:
                outcomes.extend(
                    _synthetic(number, description)
                    for number in range(seen + 1, self._plan + 1)
                )
        elif cancelled:
            expected = self._plan if self._plan is not None else "?"
            outcomes.append(
                _synthetic(seen + 1, f"cancelled after {seen} of {expected} outcomes")
            )
        elif self._plan is None:
            outcomes.append(
                _synthetic(seen + 1, f"no plan declared ({seen} outcomes seen)")
            )
        elif seen != self._plan:
            outcomes.append(
                _synthetic(seen + 1, f"planned {self._plan} outcomes but saw {seen}")
            )

        return TapResult(
            outcomes=outcomes,
            plan=self._plan,
            exit_status=exit_status,
            diagnostics=list(self._diagnostics),
            bail_out=self._bail_out,
            cancelled=cancelled,
        )


def spawn_failure(message: str) -> TapResult:
    """Result for a test whose executable could not be started."""
    return TapResult(
        outcomes=[_synthetic(1, f"failed to execute: {message}")],
        plan=None,
        exit_status=None,
    )


def _synthetic(number: int, description: str) -> TapOutcome:
    return TapOutcome(
        number=number, passed=False, description=description, synthetic=True
    )
