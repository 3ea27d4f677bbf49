# src/tapharness/tap/parser.py

"""
State machine that interprets TAP output one line at a time.

Recognized, in order: bail-out, unterminated (oversized) lines, the
version header, pragmas (TAP 13), pragma-owned lines, comments, the plan,
and result lines. Anything else is recorded in the transcript and ignored.
Protocol violations mark the TestSet aborted and print a one-line
diagnostic in place of the normal summary.
"""

import re
import sys

import structlog

from tapharness.logsink import TranscriptLog
from tapharness.reporting.console import ReportConsole
from tapharness.state import PlanState, TestSet, TestStatus
from tapharness.tap.pragmas import PRAGMAS, PragmaRegistry, PragmaState, PragmaSwitch
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("tap.parser")

DEFAULT_TAP_VERSION = 12
PRAGMA_MIN_VERSION = 13
# Test numbers and plan counts above this could not size a result table and
# are rejected before anything is allocated.
MAX_TEST_NUMBER = sys.maxsize // 8

BAIL_OUT = "Bail out!"
VERSION_PREFIX = "TAP version "
PLAN_PREFIX = "1.."

_INTEGER_RE = re.compile(r"\s*([+-]?\d+)")
_PRAGMA_RE = re.compile(r"\s*pragma\b")
_PRAGMA_NAME_RE = re.compile(r"[A-Za-z0-9_]*")

RESULT_LABELS = {
    TestStatus.PASS: "PASS",
    TestStatus.FAIL: "FAIL",
    TestStatus.SKIP: "SKIP",
    TestStatus.INVALID: "MISSING",
}


def parse_integer(text: str) -> tuple[int | None, str]:
    """
    Parses a leading integer the way strtol() does.

    Returns the value (None if there are no digits) and the unparsed rest.
    """
    match = _INTEGER_RE.match(text)
    if match is None:
        return None, text
    return int(match.group(1)), text[match.end():]


class TapParser:
    """Feeds lines of one test program's output into its TestSet."""

    def __init__(
        self,
        ts: TestSet,
        console: ReportConsole,
        pragmas: PragmaState,
        transcript: TranscriptLog | None = None,
        verbosity: int = 0,
        registry: PragmaRegistry = PRAGMAS,
    ):
        self.ts = ts
        self.console = console
        self.pragmas = pragmas
        self.transcript = transcript if transcript is not None else TranscriptLog()
        self.verbosity = verbosity
        self.registry = registry
        self._log = log.bind(test=ts.file)

    def abort(self, message: str) -> None:
        """Aborts the set, printing `ABORTED (message)` in place of the summary."""
        self.console.backspace(self.ts)
        self.console.line(f"ABORTED ({message})")
        self.ts.aborted = True
        self.ts.reported = True
        self._log.warning("Test set aborted", reason=message)

    def check_line(self, line: str) -> bool:
        """
        Interprets a single line of output.

        Returns True once the set is aborted and the caller should stop
        feeding lines.
        """
        ts = self.ts

        # Bail out wins over everything, even an unterminated line.
        bail = line.find(BAIL_OUT)
        if bail >= 0:
            self._record(line)
            self._bail_out(line[bail + len(BAIL_OUT):])
            return True

        # A line without a newline was longer than the read buffer.
        if not line.endswith("\n"):
            self._record(line)
            self._log.debug("Ignoring truncated line", length=len(line))
            return ts.aborted

        self._record(line)

        # Only the very first line may declare the version.
        if ts.tap_version == 0:
            if line.startswith(VERSION_PREFIX):
                self._version(line[len(VERSION_PREFIX):])
                return ts.aborted
            ts.tap_version = DEFAULT_TAP_VERSION

        if ts.tap_version >= PRAGMA_MIN_VERSION:
            if self._pragma(line):
                return ts.aborted
            if self.registry.claims(line, ts, self.pragmas):
                return ts.aborted

        if line.startswith("#"):
            if self.verbosity >= 3:
                self.console.write(line)
            return False

        if line.startswith(PLAN_PREFIX):
            if ts.plan in (PlanState.UNSET, PlanState.PLAN_PENDING):
                self._plan(line[len(PLAN_PREFIX):])
            else:
                self.abort("multiple plans")
            return ts.aborted

        self._result(line)
        return ts.aborted

    def _record(self, line: str) -> None:
        if line.endswith("\n"):
            self.transcript.write(line)
        else:
            self.transcript.writeln(line)

    def _bail_out(self, rest: str) -> None:
        reason = rest.lstrip().removesuffix("\n")
        self._log.warning("Test program bailed out", reason=reason or None)
        if reason:
            self.console.backspace(self.ts)
            self.console.line(f"ABORTED ({reason})")
            self.ts.reported = True
        self.ts.aborted = True

    def _version(self, text: str) -> None:
        version, _ = parse_integer(text)
        self.ts.tap_version = version or 0
        self._log.debug("TAP version declared", version=self.ts.tap_version)
        if self.ts.tap_version < PRAGMA_MIN_VERSION:
            self.console.line(f"ABORTED (Invalid TAP version: {self.ts.tap_version})")
            self.ts.reported = True
            self.ts.aborted = True

    def _pragma(self, line: str) -> bool:
        """
        Handles `pragma +name, -name` lines. Returns True if the line was a
        pragma (valid or not) and must not be processed further.
        """
        match = _PRAGMA_RE.match(line)
        if match is None:
            return False

        rest = line[match.end():].lstrip()
        while rest:
            if rest[0] == "+":
                state = PragmaSwitch.ON
            elif rest[0] == "-":
                state = PragmaSwitch.OFF
            else:
                self.abort("invalid pragma")
                return True

            name = _PRAGMA_NAME_RE.match(rest, 1).group(0)
            pragma = self.registry.lookup(name)
            if pragma is None:
                self._log.debug("Ignoring unknown pragma", pragma=name)
            else:
                pragma.handle(self.pragmas, state)

            rest = rest[1 + len(name):].lstrip()
            if not rest.startswith(","):
                break
            rest = rest[1:].lstrip()
        return True

    def _plan(self, text: str) -> None:
        ts = self.ts
        count, rest = parse_integer(text)
        count = count or 0

        if count == 0:
            rest = rest.lstrip()
            if rest.startswith("#"):
                directive = rest[1:].lstrip()
                if directive[:4].lower() == "skip":
                    self._skip_all(directive[4:].lstrip())
                    return

        if count <= 0 or count > MAX_TEST_NUMBER:
            self.abort("invalid test count")
            return

        if ts.plan == PlanState.UNSET and ts.allocated == 0:
            ts.start_plan(count)
            ts.plan = PlanState.PLAN_FIRST
        elif ts.plan == PlanState.PLAN_PENDING:
            if count < ts.count:
                self.abort(f"invalid test number {ts.count}")
                return
            ts.count = count
            ts.ensure_capacity(count)
            ts.plan = PlanState.PLAN_FINAL
        self._log.debug("Plan accepted", count=count, plan=ts.plan.name)

    def _skip_all(self, reason: str) -> None:
        ts = self.ts
        ts.reason = reason.removesuffix("\n") if reason else None
        ts.all_skipped = True
        ts.aborted = True
        ts.count = 0
        ts.passed = 0
        ts.skipped = 0
        ts.failed = 0
        self._log.info("Whole test set skipped", reason=ts.reason)

    def _result(self, line: str) -> None:
        ts = self.ts
        status = TestStatus.PASS
        rest = line
        if rest.startswith("not "):
            status = TestStatus.FAIL
            rest = rest[4:]
        if not rest.startswith("ok"):
            if self.pragmas.strict:
                self._log.warning("Non-TAP output in strict mode", line=line.rstrip("\n"))
            return

        number, after = parse_integer(rest[2:])
        if number is None:
            number = ts.current + 1
            after = rest[2:]

        out_of_plan = number > ts.count and ts.plan in (PlanState.PLAN_FIRST, PlanState.PLAN_FINAL)
        if number <= 0 or number > MAX_TEST_NUMBER or out_of_plan:
            self.abort(f"invalid test number {number}")
            return

        if ts.plan in (PlanState.UNSET, PlanState.PLAN_PENDING):
            ts.plan = PlanState.PLAN_PENDING
            ts.count = max(ts.count, number)
            ts.grow_for(number)

        description = after.lstrip()
        hash_index = description.find("#")
        if hash_index >= 0:
            directive = description[hash_index + 1:].lstrip()[:4].lower()
            if directive == "skip":
                status = TestStatus.SKIP
            elif directive == "todo":
                # Expected failures are rescued; unexpected passes fail.
                status = TestStatus.SKIP if status == TestStatus.FAIL else TestStatus.FAIL

        if ts.status_of(number) != TestStatus.INVALID:
            self.abort(f"duplicate test number {number}")
            return

        ts.record(number, status)

        if self.verbosity >= 1:
            description = description.removesuffix("\n")
            if description:
                self.console.line(f"  {number:3d} {description}: {RESULT_LABELS[status]}")
            else:
                self.console.line(f"  {number:3d} {RESULT_LABELS[status]}")
        else:
            self.console.progress(ts)


# 🔼⚙️
