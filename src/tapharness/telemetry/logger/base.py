# src/tapharness/telemetry/logger/base.py

import logging
import sys

import structlog
from rich.console import Console
from structlog.typing import FilteringBoundLogger

from tapharness.telemetry.logger.processors import (
    add_emoji_processor,
    remove_extra_keys_processor,
)

BASE_LOGGER_NAME = "tapharness"

_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    add_emoji_processor,
    remove_extra_keys_processor,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def _stderr_formatter(json_logs: bool) -> structlog.stdlib.ProcessorFormatter:
    if json_logs:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        # Colour only when a person is watching stderr.
        renderer = structlog.dev.ConsoleRenderer(colors=Console(file=sys.stderr).is_terminal)
    return structlog.stdlib.ProcessorFormatter(processor=renderer)


def _detach_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


def setup_logging(
    level: int = logging.WARNING,
    json_logs: bool = False,
    log_file: str | None = None,
    file_only: bool = False,
) -> None:
    """
    Routes every structlog and stdlib record through the root logger.

    Diagnostics go to stderr so they never interleave with the test report
    written on stdout. A `log_file` always receives JSON lines. Calling this
    again replaces the previous handlers, which is how the CLI applies a
    level found in the config file.
    """
    structlog.configure(
        processors=_PROCESSORS,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    _detach_handlers(root)
    root.setLevel(level)
    slog = structlog.get_logger(BASE_LOGGER_NAME)

    if not file_only:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_stderr_formatter(json_logs))
        root.addHandler(stderr_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            slog.error("Diagnostic log file unavailable", log_file=log_file, error=str(e))
        else:
            file_handler.setFormatter(
                structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(sort_keys=True))
            )
            file_handler.setLevel(level)
            root.addHandler(file_handler)

    slog.debug(
        "Diagnostics configured",
        level=logging.getLevelName(level),
        json=json_logs,
        stderr=not file_only,
        log_file=log_file,
    )


StructLogger = FilteringBoundLogger

# 🔼⚙️
