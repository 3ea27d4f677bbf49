# src/tapharness/state.py
#
"""
Defines the per-test-set state models mutated while a test program runs.
"""

import os
from enum import Enum, IntEnum, auto

import structlog
from attrs import define, field, mutable

log: structlog.stdlib.BoundLogger = structlog.get_logger("state")

# Growth floor for the results table when no plan has been declared yet.
RESULTS_MIN_CAPACITY = 32


class TestStatus(Enum):
    """Outcome recorded for a single test number."""

    __test__ = False

    FAIL = auto()
    PASS = auto()
    SKIP = auto()
    INVALID = auto()  # Slot never reported.


class PlanState(Enum):
    """How far the plan line has been established for a test set."""

    UNSET = auto()  # Nothing seen yet.
    PLAN_FIRST = auto()  # Plan seen before any tests.
    PLAN_PENDING = auto()  # Test seen and no plan yet.
    PLAN_FINAL = auto()  # Plan seen after some tests.


class ChildError(IntEnum):
    """
    Reserved exit codes for failures between spawning the child and running
    the real program. Checked before the program's own exit status.
    """

    DUP = 100  # Couldn't redirect stderr or stdout.
    EXEC = 101  # Couldn't exec child process.
    STDERR = 102  # Couldn't open the discard target for stderr.


CHILD_ERROR_MESSAGES = {
    ChildError.DUP: "can't dup file descriptors",
    ChildError.EXEC: "execution failed -- not found?",
    ChildError.STDERR: f"can't open {os.devnull}",
}


@define(frozen=True, slots=True)
class ExitStatus:
    """Decoded termination status of a test program."""

    exit_code: int | None = field(default=None)
    signal: int | None = field(default=None)
    core_dumped: bool = field(default=False)

    @classmethod
    def from_wait_status(cls, raw: int) -> "ExitStatus":
        """Decodes a raw status as returned by os.waitpid()."""
        if os.WIFSIGNALED(raw):
            return cls(signal=os.WTERMSIG(raw), core_dumped=os.WCOREDUMP(raw))
        if os.WIFEXITED(raw):
            return cls(exit_code=os.WEXITSTATUS(raw))
        return cls(exit_code=os.waitstatus_to_exitcode(raw))

    @classmethod
    def from_returncode(cls, returncode: int) -> "ExitStatus":
        """Decodes a subprocess-style return code (negative for signals)."""
        if returncode < 0:
            return cls(signal=-returncode)
        return cls(exit_code=returncode)

    @property
    def exited(self) -> bool:
        return self.exit_code is not None

    @property
    def child_error(self) -> ChildError | None:
        """The reserved orchestration failure this status encodes, if any."""
        if self.exit_code is None:
            return None
        try:
            return ChildError(self.exit_code)
        except ValueError:
            return None


@mutable(slots=True)
class TestSet:
    """
    Holds the state for a single run of one test program.

    Mutated by the protocol parser while output is being read and by the
    process orchestrator once the child has been reaped.
    """

    __test__ = False

    file: str = field()  # The name the test was registered under.
    path: str | None = field(default=None)  # Resolved program path.
    plan: PlanState = field(default=PlanState.UNSET)
    count: int = field(default=0)  # Expected count of tests.
    current: int = field(default=0)  # The last seen test number.
    length: int = field(default=0)  # Width of the last progress indicator.
    passed: int = field(default=0)
    failed: int = field(default=0)
    skipped: int = field(default=0)
    results: list[TestStatus] = field(factory=list)
    aborted: bool = field(default=False)
    reported: bool = field(default=False)
    exit_status: ExitStatus | None = field(default=None)
    all_skipped: bool = field(default=False)
    reason: str | None = field(default=None)  # Why all tests were skipped.
    tap_version: int = field(default=0)  # 0 until the first line decides it.

    @property
    def allocated(self) -> int:
        """Capacity of the results table."""
        return len(self.results)

    def start_plan(self, count: int) -> None:
        """Allocates a results table of exactly `count` slots."""
        self.count = count
        self.results = [TestStatus.INVALID] * count

    def ensure_capacity(self, size: int) -> None:
        """Grows the results table to exactly `size` slots if smaller."""
        if size > len(self.results):
            self.results.extend([TestStatus.INVALID] * (size - len(self.results)))

    def grow_for(self, number: int) -> None:
        """
        Grows the results table geometrically so `number` fits: double the
        capacity, at least RESULTS_MIN_CAPACITY, at least `number`.
        """
        if number <= len(self.results):
            return
        new_size = RESULTS_MIN_CAPACITY if not self.results else len(self.results) * 2
        new_size = max(new_size, number)
        log.debug("Growing results table", test=self.file, old=len(self.results), new=new_size)
        self.ensure_capacity(new_size)

    def record(self, number: int, status: TestStatus) -> None:
        """Stores the outcome for a test number and updates the counters."""
        if status == TestStatus.PASS:
            self.passed += 1
        elif status == TestStatus.FAIL:
            self.failed += 1
        elif status == TestStatus.SKIP:
            self.skipped += 1
        self.current = number
        self.results[number - 1] = status

    def status_of(self, number: int) -> TestStatus:
        return self.results[number - 1]

    def numbers_with(self, status: TestStatus) -> list[int]:
        """Test numbers within the plan holding the given outcome."""
        return [i + 1 for i, result in enumerate(self.results[: self.count]) if result == status]

    def convert_missing(self) -> int:
        """Turns every unreported slot inside the plan into a failure."""
        converted = 0
        for i in range(self.count):
            if self.results[i] == TestStatus.INVALID:
                self.results[i] = TestStatus.FAIL
                self.failed += 1
                converted += 1
        if converted:
            log.debug("Converted missing tests to failures", test=self.file, missing=converted)
        return converted

    @property
    def has_valid_plan(self) -> bool:
        return self.plan in (PlanState.PLAN_FIRST, PlanState.PLAN_FINAL)


# 🔼⚙️
