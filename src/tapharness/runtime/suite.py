# src/tapharness/runtime/suite.py

"""
High-level coordinator for a batch of test sets.

Test sets run one after another by default. With `jobs > 1` up to that
many run concurrently; each concurrent run gets its own pragma toggles, a
buffered console and a buffered transcript, both written out in one piece
when it finishes.
"""

import asyncio

import structlog

from tapharness.config.models import HarnessConfig
from tapharness.discovery import find_test
from tapharness.logsink import TranscriptLog
from tapharness.reporting.console import ReportConsole
from tapharness.reporting.summary import SuiteTotals, fail_table
from tapharness.runtime.runner import TestSetRunner
from tapharness.state import TestSet
from tapharness.tap.pragmas import PRAGMAS, PragmaRegistry, PragmaState
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.suite")


def name_column_width(tests: list[TestSet]) -> int:
    """Longest test name plus two, rounded up to the next tab stop."""
    longest = max((len(ts.file) for ts in tests), default=0) + 2
    if longest % 8:
        longest += 8 - (longest % 8)
    return longest


class SuiteDriver:
    """Runs every registered test set and prints the closing report."""

    def __init__(
        self,
        config: HarnessConfig,
        console: ReportConsole | None = None,
        transcript: TranscriptLog | None = None,
        registry: PragmaRegistry = PRAGMAS,
    ):
        self.config = config
        self.console = console if console is not None else ReportConsole()
        self.registry = registry
        self.transcript = transcript if transcript is not None else TranscriptLog()
        self.runner = TestSetRunner(config, transcript=self.transcript, registry=registry)
        self.totals = SuiteTotals()
        # Sequential runs share one toggle context, reset before each run.
        self.pragmas = self._new_pragma_state()

    def _new_pragma_state(self) -> PragmaState:
        return PragmaState(strict=self.config.strict, blocking_read=self.config.blocking_read)

    def _resolve(self, ts: TestSet) -> None:
        if ts.path is None:
            ts.path = find_test(ts.file, self.config.source_dir, self.config.build_dir)

    async def run(self, tests: list[TestSet]) -> bool:
        """
        Runs all test sets and prints the summary.

        Returns True iff no test set failed and none aborted.
        """
        width = name_column_width(tests)
        log.info("Starting test suite", tests=len(tests), jobs=self.config.jobs)
        self.totals.start_clock()

        if self.config.jobs > 1:
            await self._run_parallel(tests, width)
        else:
            for ts in tests:
                succeeded = await self._run_one(self.runner, ts, self.console, self.pragmas, width)
                self.totals.record(ts, succeeded)

        self.totals.stop_clock()
        self._report()
        log.info(
            "Test suite finished",
            success=self.totals.success,
            failed=self.totals.failed,
            aborted=self.totals.aborted,
        )
        return self.totals.success

    async def _run_one(
        self,
        runner: TestSetRunner,
        ts: TestSet,
        console: ReportConsole,
        pragmas: PragmaState,
        width: int,
    ) -> bool:
        console.name_line(ts.file, width, newline=self.config.verbosity >= 1)
        self._resolve(ts)
        return await runner.run(ts, console, pragmas, width)

    async def _run_parallel(self, tests: list[TestSet], width: int) -> None:
        semaphore = asyncio.Semaphore(self.config.jobs)
        outcomes: dict[int, bool] = {}

        async def worker(index: int, ts: TestSet) -> None:
            async with semaphore:
                buffer = ReportConsole.buffered()
                transcript = TranscriptLog.buffered() if self.transcript.is_open else None
                runner = TestSetRunner(self.config, transcript=transcript, registry=self.registry)
                outcomes[index] = await self._run_one(runner, ts, buffer, self._new_pragma_state(), width)
                self.console.write(buffer.getvalue())
                if transcript is not None:
                    self.transcript.write(transcript.getvalue())

        await asyncio.gather(*(worker(index, ts) for index, ts in enumerate(tests)))
        # Totals and the failure table follow registration order.
        for index, ts in enumerate(tests):
            self.totals.record(ts, outcomes[index])

    def _report(self) -> None:
        if self.totals.failures:
            self.console.line(fail_table(self.totals.failures))
        self.console.line()
        for line in self.totals.closing_lines():
            self.console.line(line)


# 🔼⚙️
