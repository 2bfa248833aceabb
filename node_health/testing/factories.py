"""Test factories for generating test data."""

from pathlib import Path

from polyfactory import Use
from polyfactory.factories import DataclassFactory

from node_health.models.result import TapOutcome, TapResult, TestReport
from node_health.models.test import Test


class TestFactory(DataclassFactory[Test]):
    """Factory for Test."""

    __test__ = False
    __model__ = Test

    path = Use(lambda: Path("/usr/lib/node-health/tests/example.t"))
    index = 0
    mode = "normal"


class TapOutcomeFactory(DataclassFactory[TapOutcome]):
    """Factory for TapOutcome, passing by default."""

    __model__ = TapOutcome

    number = 1
    passed = True
    directive = None
    reason = ""
    synthetic = False


class TapResultFactory(DataclassFactory[TapResult]):
    """Factory for TapResult, a clean single-outcome pass by default."""

    __model__ = TapResult

    outcomes = Use(lambda: [TapOutcomeFactory.build()])
    plan = 1
    exit_status = 0
    diagnostics = ()
    bail_out = None
    cancelled = False


class TestReportFactory(DataclassFactory[TestReport]):
    """Factory for TestReport."""

    __test__ = False
    __model__ = TestReport

    test = Use(TestFactory.build)
    result = Use(TapResultFactory.build)
