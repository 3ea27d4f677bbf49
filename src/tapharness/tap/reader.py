# src/tapharness/tap/reader.py

"""
Line-at-a-time reader over a test program's output pipe.

The reader never waits forever on a silent producer: each idle wait lasts
`retry_interval` seconds and after `retry_limit` consecutive idle waits the
stream is treated as finished. Whether the producer crashed or is merely
slow is left to the exit status check that follows.
"""

import asyncio
from enum import Enum, auto

import structlog
from attrs import define, field

from tapharness.tap.pragmas import PragmaState
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("tap.reader")

DEFAULT_MAX_LINE = 8192  # Matches the classic stdio BUFSIZ.
DEFAULT_RETRY_LIMIT = 20
DEFAULT_RETRY_INTERVAL = 1.0
READ_CHUNK = 4096


class ReadStatus(Enum):
    OK = auto()
    EOF = auto()
    ERROR = auto()


@define(frozen=True, slots=True)
class ReadResult:
    """
    One call's worth of output.

    For OK results `line` includes its newline unless the line was longer
    than the buffer, in which case it is the truncated head. For EOF and
    ERROR, `line` holds whatever unterminated text was left over.
    """

    status: ReadStatus
    line: str = field(default="")

    @property
    def ok(self) -> bool:
        return self.status == ReadStatus.OK


class LineReader:
    """Reads newline-terminated lines from an asyncio stream."""

    def __init__(
        self,
        stream: asyncio.StreamReader,
        max_length: int = DEFAULT_MAX_LINE,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        pragmas: PragmaState | None = None,
    ):
        if max_length < 2:
            raise ValueError(f"max_length must leave room for at least one character, got {max_length}")
        self._stream = stream
        # One byte of the buffer is reserved, as a C string terminator would be.
        self._limit = max_length - 1
        self._retry_limit = retry_limit
        self._retry_interval = retry_interval
        self._pragmas = pragmas
        self._pending = bytearray()
        self._eof = False

    @property
    def blocking(self) -> bool:
        return bool(self._pragmas and self._pragmas.blocking_read)

    def _take(self, size: int) -> str:
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data.decode("utf-8", errors="replace")

    def _leftover(self, status: ReadStatus) -> ReadResult:
        return ReadResult(status, self._take(len(self._pending)))

    async def _read_chunk(self) -> bytes:
        if self.blocking:
            return await self._stream.read(READ_CHUNK)
        return await asyncio.wait_for(self._stream.read(READ_CHUNK), timeout=self._retry_interval)

    async def read_line(self) -> ReadResult:
        """Returns the next line, EOF when the stream is finished, or ERROR."""
        idle = 0
        while True:
            newline = self._pending.find(b"\n", 0, self._limit)
            if newline >= 0:
                return ReadResult(ReadStatus.OK, self._take(newline + 1))
            if len(self._pending) >= self._limit:
                log.debug("Line exceeded buffer, returning truncated head", limit=self._limit)
                return ReadResult(ReadStatus.OK, self._take(self._limit))
            if self._eof:
                return self._leftover(ReadStatus.EOF)

            try:
                chunk = await self._read_chunk()
            except TimeoutError:
                if idle < self._retry_limit:
                    idle += 1
                    continue
                log.warning(
                    "Test output stalled, treating as end of stream",
                    waits=idle,
                    interval=self._retry_interval,
                )
                return self._leftover(ReadStatus.EOF)
            except OSError as e:
                log.error("Error reading test output", error=str(e))
                return self._leftover(ReadStatus.ERROR)

            if not chunk:
                self._eof = True
                continue
            self._pending.extend(chunk)
            idle = 0


# 🔼⚙️
