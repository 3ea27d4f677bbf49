# src/tapharness/reporting/summary.py

"""
Classification and textual summaries of finished test sets.
"""

import os
import time
from collections.abc import Iterable

import structlog
from attrs import field, mutable

from tapharness.reporting.console import ReportConsole
from tapharness.state import CHILD_ERROR_MESSAGES, ExitStatus, TestSet, TestStatus
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("reporting.summary")

# Column budget for the "Failing Tests" column of the failure table.
FAILING_COLUMN_WIDTH = 19

FAIL_TABLE_HEADER = (
    "Failed Set                 Fail/Total (%) Skip Stat  Failing Tests\n"
    "-------------------------- -------------- ---- ----  ------------------------"
)

BANNER = (
    "Running all tests listed in {list_name}.  If any tests fail, run the failing\n"
    "test program with tapharness single to see more details.\n"
)


def compress_ranges(numbers: Iterable[int]) -> list[tuple[int, int]]:
    """Collapses sorted test numbers into (first, last) runs of consecutive values."""
    ranges: list[tuple[int, int]] = []
    for number in numbers:
        if ranges and number == ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], number)
        else:
            ranges.append((number, number))
    return ranges


def format_ranges(numbers: Iterable[int], limit: int = 0) -> str:
    """
    Renders test numbers as `2-4, 7, 9-10`.

    With a non-zero `limit`, the width of each range (plus its separator)
    is checked before it is printed; the first range that would overflow
    the budget is replaced by `...` and nothing follows it.
    """
    parts: list[str] = []
    chars = 0
    for first, last in compress_ranges(numbers):
        needed = len(str(first))
        if last > first:
            needed += len(str(last)) + 1
        if chars > 0:
            needed += 2
        if limit > 0 and chars + needed > limit:
            if chars <= limit:
                parts.append(", ..." if chars > 0 else "...")
            break
        separator = ", " if chars > 0 else ""
        parts.append(f"{separator}{first}-{last}" if last > first else f"{separator}{last}")
        chars += needed
    return "".join(parts)


def _status_suffix(status: ExitStatus | None) -> str:
    if status is None:
        return ""
    if status.exit_code:
        return f" (exit status {status.exit_code})"
    if status.signal is not None:
        core = ", core dumped" if status.core_dumped else ""
        return f" (killed by signal {status.signal}{core})"
    return ""


def summarize(ts: TestSet, status: ExitStatus | None = None) -> str:
    """
    Builds the result text for one test set: missing and failing numbers,
    or ok/dubious with a skip count, followed by an abnormal-exit suffix.
    """
    suffix = _status_suffix(status)
    if ts.aborted:
        text = "ABORTED"
        if ts.count > 0:
            text += f" (passed {ts.passed}/{ts.count - ts.skipped})"
        return text + suffix

    parts = []
    missing = ts.numbers_with(TestStatus.INVALID)
    if missing:
        parts.append(f"MISSED {format_ranges(missing)}")
    failing = ts.numbers_with(TestStatus.FAIL)
    if failing:
        parts.append(f"FAILED {format_ranges(failing)}")
    if parts:
        return "; ".join(parts) + suffix

    text = "dubious" if suffix else "ok"
    if ts.skipped == 1:
        text += " (skipped 1 test)"
    elif ts.skipped > 1:
        text += f" (skipped {ts.skipped} tests)"
    return text + suffix


def analyze(ts: TestSet, console: ReportConsole) -> bool:
    """
    Classifies a finished test set, prints its result, and returns True if
    it ran successfully with no failing tests.
    """
    if ts.reported:
        return False

    if ts.all_skipped:
        console.line(f"skipped ({ts.reason})" if ts.reason else "skipped")
        return True

    status = ts.exit_status or ExitStatus(exit_code=0)
    if status.exited and status.exit_code != 0:
        child_error = status.child_error
        if child_error is not None:
            log.warning("Test program never ran", test=ts.file, child_error=child_error.name)
            console.line(f"ABORTED ({CHILD_ERROR_MESSAGES[child_error]})")
        else:
            console.line(summarize(ts, status))
        return False

    if status.signal is not None:
        console.line(summarize(ts, status))
        return False

    if not ts.has_valid_plan:
        console.line("ABORTED (no valid test plan)")
        ts.aborted = True
        return False

    console.line(summarize(ts))
    return ts.failed == 0


def fail_table(failures: Iterable[TestSet]) -> str:
    """Renders the per-file breakdown printed for sets that did not succeed."""
    lines = ["", FAIL_TABLE_HEADER]
    for ts in failures:
        total = ts.count - ts.skipped
        percent = (ts.failed * 100.0) / total if total else 0.0
        row = f"{ts.file[:26]:<26} {ts.failed:>4}/{total:<4} {percent:>3.0f}% {ts.skipped:>4} "
        if ts.exit_status is not None and ts.exit_status.exited:
            row += f"{ts.exit_status.exit_code:>4}  "
        else:
            row += "  --  "
        if ts.aborted:
            row += "aborted"
        else:
            row += format_ranges(ts.numbers_with(TestStatus.FAIL), FAILING_COLUMN_WIDTH)
        lines.append(row)
    return "\n".join(lines)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


@mutable(slots=True)
class SuiteTotals:
    """Running totals across every test set in a suite."""

    files: int = field(default=0)
    total: int = field(default=0)
    passed: int = field(default=0)
    skipped: int = field(default=0)
    failed: int = field(default=0)
    aborted: int = field(default=0)
    failures: list[TestSet] = field(factory=list)
    elapsed: float = field(default=0.0)
    user_cpu: float = field(default=0.0)
    system_cpu: float = field(default=0.0)
    _started: float | None = field(default=None, init=False, repr=False)
    _times_at_start: os.times_result | None = field(default=None, init=False, repr=False)

    def start_clock(self) -> None:
        self._started = time.monotonic()
        self._times_at_start = os.times()

    def stop_clock(self) -> None:
        """Records wall time and the CPU time used by reaped children since start."""
        if self._started is None or self._times_at_start is None:
            return
        self.elapsed = time.monotonic() - self._started
        now = os.times()
        self.user_cpu = now.children_user - self._times_at_start.children_user
        self.system_cpu = now.children_system - self._times_at_start.children_system

    def record(self, ts: TestSet, succeeded: bool) -> None:
        self.files += 1
        self.aborted += int(ts.aborted)
        self.total += ts.count + int(ts.all_skipped)
        self.passed += ts.passed
        self.skipped += ts.skipped + int(ts.all_skipped)
        self.failed += ts.failed
        if not succeeded:
            self.failures.append(ts)

    @property
    def tests(self) -> int:
        """Tests that were actually judged (skips excluded)."""
        return self.total - self.skipped

    @property
    def success(self) -> bool:
        return self.failed == 0 and self.aborted == 0

    def closing_lines(self) -> list[str]:
        """The final two summary lines of a suite run."""
        tests = self.tests
        if self.aborted:
            outcome = f"Aborted {_plural(self.aborted, 'test set')}, passed {self.passed}/{tests} tests"
        elif self.failed == 0:
            outcome = "All tests successful"
        else:
            okay = (tests - self.failed) * 100.0 / tests if tests else 0.0
            outcome = f"Failed {self.failed}/{tests} tests, {okay:.2f}% okay"
        if self.skipped:
            outcome += f", {_plural(self.skipped, 'test')} skipped"
        cpu = self.user_cpu + self.system_cpu
        timing = (
            f"Files={self.files},  Tests={tests},  {self.elapsed:.2f} seconds"
            f" ({self.user_cpu:.2f} usr + {self.system_cpu:.2f} sys = {cpu:.2f} CPU)"
        )
        return [f"{outcome}.", timing]


# 🔼⚙️
