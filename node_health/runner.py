"""Orchestration loop: discover, schedule, aggregate and report."""

import logging
from dataclasses import dataclass

from node_health.discovery import DiscoveryError, discover_tests
from node_health.formatter import Formatter
from node_health.models.config import RunConfiguration
from node_health.models.result import Aggregate
from node_health.scheduler import Scheduler

log = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


@dataclass(kw_only=True)
class Orchestrator:
    """Drives runs until done and tracks the latest exit code.

    ``exit_code`` always reflects the most recently completed run, so an
    interrupted forever loop can still report it.
    """

    config: RunConfiguration
    formatter: Formatter
    exit_code: int = EXIT_INTERRUPTED
    completed_runs: int = 0

    async def run(self) -> int:
        """Run once, or repeatedly in forever mode, and return the exit code."""
        if self.config.mode != "run":
            return await self.run_passthrough()

        while True:
            try:
                aggregate = await self.run_once()
            except DiscoveryError as e:
                log.error("%s", e)
                self.exit_code = EXIT_CONFIG_ERROR
                return self.exit_code

            self.exit_code = EXIT_FAILURE if aggregate.has_errors else EXIT_SUCCESS
            self.completed_runs += 1

            if not self.config.forever or aggregate.aborted:
                return self.exit_code
            log.info("Run %d complete, starting again", self.completed_runs)

    async def run_once(self) -> Aggregate:
        """Execute a single run with fresh discovery."""
        tests = discover_tests(self.config)
        if not tests:
            log.warning("No tests found in %s", self.config.test_dir)

        scheduler = Scheduler(config=self.config, listener=self.formatter)
        aggregate = await scheduler.run(tests)
        self.formatter.summary(aggregate)

        log.info(
            "Run finished: total=%d failed=%d has_errors=%s",
            aggregate.total,
            aggregate.failed,
            aggregate.has_errors,
        )
        return aggregate

    async def run_passthrough(self) -> int:
        """Handle describe and emit-config modes."""
        try:
            tests = discover_tests(self.config)
        except DiscoveryError as e:
            log.error("%s", e)
            self.exit_code = EXIT_CONFIG_ERROR
            return self.exit_code

        scheduler = Scheduler(config=self.config, listener=self.formatter)
        await scheduler.run_passthrough(tests)
        self.exit_code = EXIT_SUCCESS
        self.completed_runs += 1
        return self.exit_code
