# src/tapharness/discovery.py

"""
Locating test programs and building the list of test sets to run.
"""

import os
from collections.abc import Iterable
from pathlib import Path

import structlog

from tapharness.exceptions import TestListError
from tapharness.state import TestSet
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("discovery")

TEST_SUFFIXES = ("-t", ".t", "")


def is_valid_test(path: Path) -> bool:
    """True if `path` is an executable regular file."""
    return path.is_file() and os.access(path, os.X_OK)


def find_test(name: str, source: str | Path | None = None, build: str | Path | None = None) -> str:
    """
    Resolves a test name to a program path.

    Each suffix in TEST_SUFFIXES is tried against the current directory,
    then the build directory, then the source directory; the first
    executable regular file wins. Falls back to the name itself.
    """
    # Joined as text so a relative result keeps its leading "./" and is
    # never looked up on PATH.
    bases = [str(base) for base in (".", build, source) if base is not None]
    for suffix in TEST_SUFFIXES:
        for base in bases:
            candidate = f"{base}/{name}{suffix}"
            if is_valid_test(Path(candidate)):
                log.debug("Resolved test program", test=name, path=candidate)
                return candidate
    log.debug("No executable found, using test name as path", test=name)
    return name


def build_test_list(names: Iterable[str]) -> list[TestSet]:
    """Creates a fresh TestSet for each test name, in order."""
    return [TestSet(file=name) for name in names]


def read_test_list(list_path: str | Path) -> list[TestSet]:
    """
    Reads test names from a file, one per line.

    Lines starting with `#` and blank lines are ignored.
    """
    try:
        with open(list_path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except OSError as e:
        raise TestListError("can't open test list", list_path=str(list_path), details=e) from e

    names = [line for line in lines if line.strip() and not line.startswith("#")]
    log.info("Read test list", list_path=str(list_path), tests=len(names))
    return build_test_list(names)


# 🔼⚙️
