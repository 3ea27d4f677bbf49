import os
import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from tapharness.config import HarnessConfig
from tapharness.reporting.console import ReportConsole
from tapharness.state import TestSet
from tapharness.tap.parser import TapParser
from tapharness.tap.pragmas import PragmaState


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an executable /bin/sh test program into tmp_path."""
    if os.name != "posix":
        pytest.skip("Test programs are POSIX shell scripts")

    def _make(name: str, body: str, executable: bool = True) -> Path:
        script = tmp_path / name
        script.write_text(f"#!/bin/sh\n{body}")
        mode = script.stat().st_mode
        if executable:
            script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            script.chmod(mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
        return script

    return _make


@pytest.fixture
def fast_config() -> HarnessConfig:
    """A harness config that gives up on silent programs quickly."""
    return HarnessConfig(retry_limit=40, retry_interval=0.05)


@pytest.fixture
def console() -> ReportConsole:
    return ReportConsole.buffered()


@pytest.fixture(autouse=True)
def clean_test_dirs(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keeps SOURCE/BUILD exported by one test from leaking into the next."""
    for name in (
        "SOURCE",
        "BUILD",
        "TAPHARNESS_SOURCE",
        "TAPHARNESS_BUILD",
        "TAPHARNESS_CONF",
        "TAPHARNESS_LOG_LEVEL",
    ):
        # setenv first so the original value, or its absence, is restored afterwards.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def feed_lines(lines: list[str], **kwargs) -> tuple[TestSet, ReportConsole, PragmaState]:
    """Runs lines through a fresh parser, stopping when the set aborts."""
    ts = TestSet(file="sample")
    console = kwargs.pop("console", None) or ReportConsole.buffered()
    pragmas = kwargs.pop("pragmas", None) or PragmaState()
    parser = TapParser(ts, console, pragmas, **kwargs)
    for line in lines:
        if parser.check_line(line):
            break
    return ts, console, pragmas


@pytest.fixture
def feed() -> Callable[..., tuple[TestSet, ReportConsole, PragmaState]]:
    return feed_lines
