# src/tapharness/cli/utils.py

import logging
import os
from pathlib import Path

import click
import structlog

from tapharness.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="TAPHARNESS_LOG_LEVEL",
        help="Set the diagnostic logging level (overrides config file).",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="TAPHARNESS_LOG_FILE",
        help="Path to write diagnostic logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="TAPHARNESS_JSON_LOGS",
        help="Output console diagnostics as JSON.",
    )(f)
    return f


def directory_options(f):
    """Decorator adding the build and source directory options."""
    f = click.option(
        "-s",
        "--source-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        envvar="TAPHARNESS_SOURCE",
        help="Source directory searched for tests and exported as SOURCE.",
    )(f)
    f = click.option(
        "-b",
        "--build-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        envvar="TAPHARNESS_BUILD",
        help="Build directory searched for tests and exported as BUILD.",
    )(f)
    return f


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "WARNING",
) -> None:
    """
    Setup logging using context values, allowing local overrides.
    """
    ctx.ensure_object(dict)
    log_level_str = local_log_level or ctx.obj.get("LOG_LEVEL") or default_log_level
    log_file_path = local_log_file or ctx.obj.get("LOG_FILE")
    use_json_logs = local_json_logs if local_json_logs is not None else ctx.obj.get("JSON_LOGS", False)

    numeric_level = logging.getLevelName(log_level_str.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING
        log_level_str = "WARNING"

    core_setup_logging(
        level=numeric_level,
        json_logs=use_json_logs,
        log_file=log_file_path,
    )

    log.debug(
        "CLI logging initialized via utils",
        level=log_level_str,
        file=log_file_path or "console",
        json=use_json_logs,
    )


def export_test_dirs(source_dir: Path | None, build_dir: Path | None) -> None:
    """Publishes the source and build directories to test programs via the environment."""
    if source_dir is not None:
        os.environ["SOURCE"] = str(source_dir)
    if build_dir is not None:
        os.environ["BUILD"] = str(build_dir)
    log.debug(
        "Exported test directories",
        source=str(source_dir) if source_dir else None,
        build=str(build_dir) if build_dir else None,
    )


# ⚙️🛠️
