"""Run diagnostic tests as child processes with bounded concurrency."""

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Protocol

from node_health.aggregator import Aggregator
from node_health.models.config import TESTDIR_ENV, RunConfiguration
from node_health.models.result import (
    Aggregate,
    BailOut,
    TapEvent,
    TapOutcome,
    TestReport,
)
from node_health.models.test import Test
from node_health.tap import TapParser, spawn_failure

log = logging.getLogger(__name__)

LINE_QUEUE_SIZE = 64
READ_LIMIT = 1024 * 1024


class RunListener(Protocol):
    """Receives scheduler events as they happen."""

    def test_started(self, test: Test) -> None:
        """Called before a test's process is spawned."""

    def output(self, test: Test, line: str) -> None:
        """Called for every line a running test writes."""

    def test_finished(self, report: TestReport) -> None:
        """Called once a test's process has exited and its output is drained."""

    def passthrough(self, test: Test, line: str) -> None:
        """Called for each line of describe / emit-config output."""


@dataclass(kw_only=True)
class Scheduler:
    """Runs one set of tests with at most ``config.effective_jobs`` in flight.

    A fixed pool of workers drains a queue of pending tests. Each job's merged
    stdout/stderr is read by a reader task into a bounded queue and parsed
    line by line while the process is still running. In first-fail mode, or
    when a test bails out, every other running process group is terminated and
    no further test is started.

    There is no per-test timeout: a test that never exits holds its worker
    slot until the run is interrupted.
    """

    config: RunConfiguration
    listener: RunListener
    _running: dict[int, asyncio.subprocess.Process] = field(
        default_factory=dict, init=False
    )
    _cancelled: set[int] = field(default_factory=set, init=False)
    _abort_reason: str | None = field(default=None, init=False)

    async def run(self, tests: Sequence[Test]) -> Aggregate:
        """Execute ``tests`` and return their aggregate in discovery order."""
        aggregator = Aggregator(tests=tests)
        pending: asyncio.Queue[Test] = asyncio.Queue()
        for test in tests:
            pending.put_nowait(test)

        jobs = min(self.config.effective_jobs, len(tests))
        log.info("Running %d test(s) with %d job(s)", len(tests), jobs)
        workers = [
            asyncio.create_task(self._worker(pending, aggregator)) for _ in range(jobs)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        log.info("Test execution completed")
        return aggregator.summarize(aborted=self._abort_reason)

    async def run_passthrough(self, tests: Sequence[Test]) -> None:
        """Ask each test for its description or configuration fragment.

        Output is relayed without TAP parsing, in discovery order.
        """
        semaphore = asyncio.Semaphore(self.config.effective_jobs)

        async def capture(test: Test) -> Sequence[str]:
            async with semaphore:
                return await self._capture(test)

        tasks = [asyncio.create_task(capture(test)) for test in tests]
        try:
            for test, task in zip(tests, tasks, strict=True):
                for line in await task:
                    self.listener.passthrough(test, line)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _worker(
        self, pending: asyncio.Queue[Test], aggregator: Aggregator
    ) -> None:
        while self._abort_reason is None:
            try:
                test = pending.get_nowait()
            except asyncio.QueueEmpty:
                return
            report = await self._run_job(test)
            await aggregator.record(report)
            self.listener.test_finished(report)
            if report.failed and self.config.first_fail:
                self._abort(
                    report.test,
                    f"{report.test.name} failed: {report.result.failure_reason}",
                )

    async def _run_job(self, test: Test) -> TestReport:
        self.listener.test_started(test)
        log.info("Starting test %s", test.name)
        try:
            process = await self._spawn(test)
        except OSError as exc:
            log.warning("Failed to execute %s: %s", test.path, exc)
            return TestReport(test=test, result=spawn_failure(str(exc)))

        self._running[test.index] = process
        if self._abort_reason is not None:
            self._cancel(test.index, process)

        parser = TapParser()
        try:
            await self._consume(test, process, parser)
            exit_status = await process.wait()
        finally:
            self._running.pop(test.index, None)
            if process.returncode is None:
                _signal_group(process, signal.SIGKILL)
                await process.wait()

        result = parser.finish(exit_status, cancelled=test.index in self._cancelled)
        if result.failures and exit_status == 0:
            log.warning("%s reported failures but exited with status 0", test.name)
        elif not result.failures and exit_status != 0:
            log.warning(
                "%s reported no failures but exited with status %d",
                test.name,
                exit_status,
            )
        log.info("Test %s finished with status %d", test.name, exit_status)
        return TestReport(test=test, result=result)

    async def _consume(
        self, test: Test, process: asyncio.subprocess.Process, parser: TapParser
    ) -> None:
        if process.stdout is None:
            raise RuntimeError(f"No output pipe for {test.name}")

        lines: asyncio.Queue[str | None] = asyncio.Queue(maxsize=LINE_QUEUE_SIZE)
        reader = asyncio.create_task(read_lines(process.stdout, lines))
        try:
            while (line := await lines.get()) is not None:
                self.listener.output(test, line)
                self._handle_event(test, parser.feed(line))
            await reader
        finally:
            reader.cancel()

    def _handle_event(self, test: Test, event: TapEvent | None) -> None:
        if isinstance(event, TapOutcome) and event.failed and self.config.first_fail:
            self._abort(test, f"{test.name} failed: {event}")
        elif isinstance(event, BailOut):
            reason = f"{test.name} bailed out"
            if event.reason:
                reason += f": {event.reason}"
            self._abort(test, reason)

    def _abort(self, origin: Test, reason: str) -> None:
        if self._abort_reason is not None:
            return
        self._abort_reason = reason
        log.warning("Aborting run: %s", reason)
        for index, process in list(self._running.items()):
            if index != origin.index:
                self._cancel(index, process)

    def _cancel(self, index: int, process: asyncio.subprocess.Process) -> None:
        self._cancelled.add(index)
        _signal_group(process, signal.SIGTERM)

    async def _capture(self, test: Test) -> Sequence[str]:
        try:
            process = await self._spawn(test)
        except OSError as exc:
            log.warning("Failed to execute %s: %s", test.path, exc)
            return []

        try:
            stdout, _ = await process.communicate()
        finally:
            if process.returncode is None:
                _signal_group(process, signal.SIGKILL)
                await process.wait()

        if process.returncode != 0:
            log.warning("%s exited with status %d", test.name, process.returncode)
        return stdout.decode(errors="replace").splitlines()

    async def _spawn(self, test: Test) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            test.path,
            *test.arguments,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=self._environment(),
            limit=READ_LIMIT,
            process_group=0,
        )

    def _environment(self) -> Mapping[str, str]:
        return {**os.environ, TESTDIR_ENV: str(self.config.test_dir.resolve())}


async def read_lines(
    stream: asyncio.StreamReader, lines: asyncio.Queue[str | None]
) -> None:
    """Move decoded lines from ``stream`` into ``lines``, then a ``None``.

    A line longer than the stream's limit is discarded in full, including the
    part that arrives after the limit was hit.
    """
    discarding = False
    while True:
        try:
            raw = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            raw = e.partial
        except asyncio.LimitOverrunError as e:
            if not discarding:
                log.warning("Dropped an output line longer than %d bytes", READ_LIMIT)
            discarding = True
            await stream.readexactly(e.consumed)
            continue

        if not raw:
            break
        if discarding:
            discarding = False
            continue
        await lines.put(raw.decode(errors="replace").rstrip("\r\n"))
    await lines.put(None)


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    # Each test leads its own process group, so this reaches its children too.
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, sig)
