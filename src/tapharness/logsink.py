# src/tapharness/logsink.py

"""
Transcript sink that records every line a test program printed.

Writes are no-ops until the sink is opened, so the parser can log
unconditionally.
"""

import io
import sys
from pathlib import Path
from typing import TextIO

import structlog

from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("logsink")

_STANDARD_STREAMS = {
    "stdout": lambda: sys.stdout,
    "stderr": lambda: sys.stderr,
}


class TranscriptLog:
    """A TAP transcript file, or one of the standard streams."""

    def __init__(self) -> None:
        self._file: TextIO | None = None
        self._owned = False

    @classmethod
    def buffered(cls) -> "TranscriptLog":
        """An open transcript that collects output in memory."""
        sink = cls()
        sink._file = io.StringIO()
        return sink

    def getvalue(self) -> str:
        if isinstance(self._file, io.StringIO):
            return self._file.getvalue()
        raise TypeError("Only buffered transcripts keep their output")

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, name: str | Path, append: bool = False) -> None:
        """
        Opens the transcript. "stdout" and "stderr" name the standard streams.

        Raises OSError if the file cannot be opened.
        """
        if self._file is not None:
            self.close()

        stream = _STANDARD_STREAMS.get(str(name))
        if stream is not None:
            self._file = stream()
            self._owned = False
        else:
            self._file = open(name, "a" if append else "w", encoding="utf-8")
            self._owned = True
        log.debug("Transcript opened", target=str(name), append=append)

    def close(self) -> None:
        if self._file is None:
            return
        if self._owned:
            self._file.close()
        self._file = None
        self._owned = False

    def write(self, text: str) -> None:
        if self._file is None:
            return
        self._file.write(text)
        self._file.flush()

    def writeln(self, text: str) -> None:
        self.write(f"{text}\n")

    def __enter__(self) -> "TranscriptLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# 🔼⚙️
