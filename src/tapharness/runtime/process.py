# src/tapharness/runtime/process.py

"""
Starts test programs with their output connected to a pipe and reaps them.

Failures that happen after the child has been created but before the test
program itself runs (redirection, opening the stderr discard target,
exec) are reported through the reserved ChildError exit codes instead of
exceptions, so they are classified like any other finished run. Only
conditions that make spawning impossible raise ProcessSetupError.
"""

import asyncio
import os
import subprocess
from typing import BinaryIO

import structlog

from tapharness.exceptions import ProcessSetupError
from tapharness.state import ChildError, ExitStatus
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.process")

# StreamReader buffer limit; the LineReader enforces the real line length.
STREAM_LIMIT = 2**16


class TestProcess:
    """
    A started test program, or a placeholder for one that failed to start.

    `stream` yields the program's standard output (and standard error when
    merged). Call `close()` once the output is no longer needed, then
    `wait()` for the decoded exit status.
    """

    __test__ = False

    def __init__(
        self,
        path: str,
        stream: asyncio.StreamReader,
        popen: subprocess.Popen | None = None,
        transport: asyncio.ReadTransport | None = None,
        child_error: ChildError | None = None,
    ):
        self.path = path
        self.stream = stream
        self._popen = popen
        self._transport = transport
        self._child_error = child_error
        self._status: ExitStatus | None = None

    @classmethod
    def failed(cls, path: str, child_error: ChildError) -> "TestProcess":
        """A process that never ran; its output is empty and its status is the reserved code."""
        log.warning("Test program could not be started", path=path, child_error=child_error.name)
        stream = asyncio.StreamReader()
        stream.feed_eof()
        return cls(path, stream, child_error=child_error)

    @property
    def pid(self) -> int | None:
        return self._popen.pid if self._popen else None

    async def close(self) -> None:
        """Closes our end of the output pipe."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            # Let the event loop run the transport's connection_lost callback.
            await asyncio.sleep(0)

    async def wait(self) -> ExitStatus:
        """Blocks until the child terminates and returns its decoded status."""
        if self._status is not None:
            return self._status
        if self._child_error is not None:
            self._status = ExitStatus(exit_code=int(self._child_error))
            return self._status

        assert self._popen is not None
        if os.name == "posix":
            # Reap directly to keep the core dump flag, which Popen discards.
            try:
                _, raw = await asyncio.to_thread(os.waitpid, self._popen.pid, 0)
            except ChildProcessError as e:
                raise ProcessSetupError(
                    f"waitpid for {self._popen.pid} failed", test_path=self.path, details=e
                ) from e
            self._popen.returncode = os.waitstatus_to_exitcode(raw)
            self._status = ExitStatus.from_wait_status(raw)
        else:
            returncode = await asyncio.to_thread(self._popen.wait)
            self._status = ExitStatus.from_returncode(returncode)

        log.debug(
            "Test program reaped",
            path=self.path,
            pid=self._popen.pid,
            exit_code=self._status.exit_code,
            signal=self._status.signal,
            core_dumped=self._status.core_dumped,
        )
        return self._status


def _open_discard_target() -> BinaryIO:
    return open(os.devnull, "wb")


def _exec_path(path: str) -> str:
    """Names a bare program relative to the working directory so PATH is never searched."""
    if os.sep in path:
        return path
    return os.path.join(os.curdir, path)


def _classify_spawn_error(error: Exception, path: str) -> ChildError | None:
    """Maps a spawn failure onto a reserved child error code, if it is one."""
    if isinstance(error, subprocess.SubprocessError):
        # The child failed while preparing its descriptors, before exec.
        return ChildError.DUP
    if isinstance(error, OSError):
        if error.filename is not None and os.fsdecode(error.filename) == path:
            return ChildError.EXEC
    return None


async def start_test(path: str, capture_stderr: bool = False) -> TestProcess:
    """
    Starts the test program at `path` with stdout connected to a pipe.

    Standard error is discarded unless `capture_stderr` is set, in which
    case it is merged into the same pipe so it is parsed too.
    """
    loop = asyncio.get_running_loop()
    proc_log = log.bind(path=path, capture_stderr=capture_stderr)

    discard: BinaryIO | None = None
    if not capture_stderr:
        try:
            discard = _open_discard_target()
        except OSError as e:
            proc_log.error("Cannot open discard target for stderr", error=str(e))
            return TestProcess.failed(path, ChildError.STDERR)

    try:
        read_fd, write_fd = os.pipe()
    except OSError as e:
        if discard is not None:
            discard.close()
        raise ProcessSetupError("can't create pipe", test_path=path, details=e) from e

    exec_path = _exec_path(path)
    try:
        popen = subprocess.Popen(
            [exec_path],
            stdout=write_fd,
            stderr=write_fd if capture_stderr else discard,
            close_fds=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        os.close(read_fd)
        child_error = _classify_spawn_error(e, exec_path)
        if child_error is None:
            raise ProcessSetupError("can't fork", test_path=path, details=e) from e
        proc_log.debug("Spawn failed in the child", error=str(e))
        return TestProcess.failed(path, child_error)
    finally:
        os.close(write_fd)
        if discard is not None:
            discard.close()

    stream = asyncio.StreamReader(limit=STREAM_LIMIT)
    pipe = os.fdopen(read_fd, "rb", buffering=0)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(stream), pipe)
    except OSError as e:
        pipe.close()
        raise ProcessSetupError("can't read from pipe", test_path=path, details=e) from e

    proc_log.debug("Test program started", pid=popen.pid)
    return TestProcess(path, stream, popen=popen, transport=transport)


# 🔼⚙️
