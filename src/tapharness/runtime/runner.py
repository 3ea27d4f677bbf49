# src/tapharness/runtime/runner.py

"""
Runs one test set: spawn, parse output until EOF or abort, drain, reap,
then classify and report.
"""

import structlog

from tapharness.config.models import HarnessConfig
from tapharness.logsink import TranscriptLog
from tapharness.reporting.console import ReportConsole
from tapharness.reporting.summary import analyze
from tapharness.runtime.process import start_test
from tapharness.state import PlanState, TestSet
from tapharness.tap.parser import TapParser
from tapharness.tap.pragmas import PRAGMAS, PragmaRegistry, PragmaState
from tapharness.tap.reader import LineReader
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.runner")


class TestSetRunner:
    """Executes a single registered test program and scores its output."""

    __test__ = False

    def __init__(
        self,
        config: HarnessConfig,
        transcript: TranscriptLog | None = None,
        registry: PragmaRegistry = PRAGMAS,
    ):
        self.config = config
        self.transcript = transcript if transcript is not None else TranscriptLog()
        self.registry = registry

    async def run(
        self,
        ts: TestSet,
        console: ReportConsole,
        pragmas: PragmaState,
        width: int = 0,
    ) -> bool:
        """
        Runs `ts` and prints its result line.

        Returns True if the program ran and every test passed or was skipped.
        Raises ProcessSetupError on unrecoverable spawn/reap failures.
        """
        run_log = log.bind(test=ts.file, path=ts.path)
        run_log.info("Running test set")

        process = await start_test(ts.path or ts.file, capture_stderr=self.config.capture_stderr)

        # Every run starts from the pre-suite pragma toggles.
        pragmas.reset(self.registry)

        reader = LineReader(
            process.stream,
            max_length=self.config.max_line_length,
            retry_limit=self.config.retry_limit,
            retry_interval=self.config.retry_interval,
            pragmas=pragmas,
        )
        parser = TapParser(
            ts,
            console,
            pragmas,
            transcript=self.transcript,
            verbosity=self.config.verbosity,
            registry=self.registry,
        )

        while not ts.aborted:
            result = await reader.read_line()
            if not result.ok:
                if result.line:
                    self.transcript.writeln(result.line)
                break
            parser.check_line(result.line)

        if ts.plan == PlanState.UNSET:
            ts.aborted = True

        if self.config.verbosity >= 1:
            console.name_line(ts.file, width)
        else:
            console.backspace(ts)

        # Discard whatever the program still prints, then reap it.
        while (await reader.read_line()).ok:
            pass
        await process.close()
        ts.exit_status = await process.wait()

        if ts.all_skipped:
            ts.aborted = False
        succeeded = analyze(ts, console)

        if ts.convert_missing():
            succeeded = False

        run_log.info(
            "Test set finished",
            succeeded=succeeded,
            passed=ts.passed,
            failed=ts.failed,
            skipped=ts.skipped,
            aborted=ts.aborted,
        )
        return succeeded


# 🔼⚙️
