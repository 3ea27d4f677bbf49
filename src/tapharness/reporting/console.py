# src/tapharness/reporting/console.py

"""
Output channel for the human-readable test report.
"""

import io
import sys
from typing import TextIO

import click

from tapharness.state import PlanState, TestSet


class ReportConsole:
    """
    Writes report text to a stream and manages the inline progress indicator.

    The `current/count` indicator is only drawn on a terminal; it is erased
    with backspaces before anything else is printed on the same line.
    """

    def __init__(self, stream: TextIO | None = None, tty: bool | None = None):
        self.stream = stream if stream is not None else sys.stdout
        if tty is None:
            isatty = getattr(self.stream, "isatty", None)
            tty = bool(isatty and isatty())
        self.tty = tty

    @classmethod
    def buffered(cls) -> "ReportConsole":
        """A console that collects output in memory, never treated as a tty."""
        return cls(io.StringIO(), tty=False)

    def getvalue(self) -> str:
        if isinstance(self.stream, io.StringIO):
            return self.stream.getvalue()
        raise TypeError("Only buffered consoles keep their output")

    def write(self, text: str) -> None:
        click.echo(text, file=self.stream, nl=False)

    def line(self, text: str = "") -> None:
        click.echo(text, file=self.stream)

    def backspace(self, ts: TestSet) -> None:
        """Backs up over the progress indicator last drawn for `ts`."""
        if not self.tty:
            return
        if ts.length:
            self.write("\b" * ts.length + " " * ts.length + "\b" * ts.length)
        ts.length = 0

    def progress(self, ts: TestSet) -> None:
        """Redraws the `current/count` indicator (`current/?` while the plan is pending)."""
        if not self.tty:
            return
        self.backspace(ts)
        if ts.plan == PlanState.PLAN_PENDING:
            text = f"{ts.current}/?"
        else:
            text = f"{ts.current}/{ts.count}"
        self.write(text)
        ts.length = len(text)

    def name_line(self, name: str, width: int, newline: bool = False) -> None:
        """Prints a test name padded with dots to the given column width."""
        self.write(name + "." * max(0, width - len(name)))
        if newline:
            self.line()


# 🔼⚙️
