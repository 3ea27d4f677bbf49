#
# config/models.py
#
"""
Attrs-based data models for tapharness configuration structure.
"""

import logging
from pathlib import Path
from typing import Any

from attrs import define, field

from tapharness.tap.reader import DEFAULT_MAX_LINE, DEFAULT_RETRY_INTERVAL, DEFAULT_RETRY_LIMIT


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_positive_int(inst: Any, attr: Any, value: int) -> None:
    """Validator ensures integer is positive."""
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be positive integer, got {value}")


def _validate_non_negative_int(inst: Any, attr: Any, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"Field '{attr.name}' must be a non-negative integer, got {value}")


def _validate_non_negative_number(inst: Any, attr: Any, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
        raise ValueError(f"Field '{attr.name}' must be a non-negative number, got {value}")


def _validate_line_length(inst: Any, attr: Any, value: int) -> None:
    _validate_positive_int(inst, attr, value)
    if value < 2:
        raise ValueError(f"Field '{attr.name}' must be at least 2, got {value}")


def _optional_path(value: str | Path | None) -> Path | None:
    return Path(value) if value is not None else None


# --- Harness behaviour ---
@define(frozen=True, slots=True)
class HarnessConfig:
    """Settings that control how test programs are run and parsed."""

    verbosity: int = field(default=0, validator=_validate_non_negative_int)
    capture_stderr: bool = field(default=False)  # Merge child stderr into the parsed stream.
    strict: bool = field(default=False)  # Baseline for the `strict` pragma.
    blocking_read: bool = field(default=False)  # Baseline for the `readblock` pragma.
    retry_limit: int = field(default=DEFAULT_RETRY_LIMIT, validator=_validate_non_negative_int)
    retry_interval: float = field(default=DEFAULT_RETRY_INTERVAL, validator=_validate_non_negative_number)
    max_line_length: int = field(default=DEFAULT_MAX_LINE, validator=_validate_line_length)
    jobs: int = field(default=1, validator=_validate_positive_int)
    source_dir: Path | None = field(default=None, converter=_optional_path)
    build_dir: Path | None = field(default=None, converter=_optional_path)


@define(frozen=True, slots=True)
class TranscriptConfig:
    """Where the raw TAP transcript of every test program is written."""

    path: Path | None = field(default=None, converter=_optional_path)
    append: bool = field(default=False)


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for tapharness."""

    log_level: str = field(default="WARNING", validator=_validate_log_level)


@define(frozen=True, slots=True)
class TapHarnessConfig:
    """Root configuration object for the tapharness application."""

    harness: HarnessConfig = field(factory=HarnessConfig)
    transcript: TranscriptConfig = field(factory=TranscriptConfig)
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})


# 🔼⚙️
