# src/tapharness/cli/run_cmds.py

import asyncio
import logging
import os
from pathlib import Path
from typing import NoReturn

import click
import structlog

from tapharness.cli.utils import (
    directory_options,
    export_test_dirs,
    logging_options,
    setup_logging_from_context,
)
from tapharness.config import TapHarnessConfig, apply_overrides, load_config
from tapharness.discovery import build_test_list, find_test, read_test_list
from tapharness.exceptions import ConfigurationError, ProcessSetupError, TestListError
from tapharness.logsink import TranscriptLog
from tapharness.reporting.console import ReportConsole
from tapharness.reporting.summary import BANNER
from tapharness.runtime.suite import SuiteDriver
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")


def _fatal(ctx: click.Context, message: str) -> NoReturn:
    click.echo(f"tapharness: {message}", err=True)
    ctx.exit(1)


@click.command(name="run")
@click.argument("tests", nargs=-1)
@click.option(
    "-f",
    "--list-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Take the list of tests to run from this file.",
)
@directory_options
@click.option(
    "-c",
    "--config-path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
    default=None,
    envvar="TAPHARNESS_CONF",
    show_envvar=True,
    help="Path to a tapharness TOML configuration file.",
)
@click.option(
    "-o",
    "--transcript",
    default=None,
    help="Write the raw output of every test to this file ('stdout' and 'stderr' allowed).",
)
@click.option("-a", "--append", is_flag=True, default=None, help="Append to the transcript instead of replacing it.")
@click.option("-v", "--verbose", count=True, help="Show each test result; repeat three times to echo comments.")
@click.option("-e", "--capture-stderr", is_flag=True, default=None, help="Parse test stderr along with stdout.")
@click.option("-p", "--strict", is_flag=True, default=None, help="Start each test in strict TAP mode.")
@click.option("--readblock", is_flag=True, default=None, help="Wait indefinitely for test output.")
@click.option("--retry-limit", type=click.IntRange(min=0), default=None, help="Idle one-second waits before giving up on output.")
@click.option("-j", "--jobs", type=click.IntRange(min=1), default=None, help="Run up to this many tests at once.")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    tests: tuple[str, ...],
    list_file: Path | None,
    build_dir: Path | None,
    source_dir: Path | None,
    config_path: Path | None,
    transcript: str | None,
    append: bool | None,
    verbose: int,
    capture_stderr: bool | None,
    strict: bool | None,
    readblock: bool | None,
    retry_limit: int | None,
    jobs: int | None,
    **kwargs,
):
    """Run test programs and report their TAP results."""
    if (list_file is None) == (not tests):
        raise click.UsageError("Give either test names or --list-file, but not both.")

    try:
        config = load_config(config_path) if config_path else TapHarnessConfig()
    except ConfigurationError as e:
        log.error("Configuration problem", error=str(e))
        _fatal(ctx, f"configuration problem: {e}")

    # The command line and environment win over the config file's level.
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level=config.global_config.log_level,
    )

    try:
        harness = apply_overrides(
            config.harness,
            verbosity=verbose or None,
            capture_stderr=capture_stderr,
            strict=strict,
            blocking_read=readblock,
            retry_limit=retry_limit,
            jobs=jobs,
            source_dir=source_dir,
            build_dir=build_dir,
        )
    except ConfigurationError as e:
        log.error("Configuration problem", error=str(e))
        _fatal(ctx, f"configuration problem: {e}")

    export_test_dirs(harness.source_dir, harness.build_dir)

    transcript_path = transcript or config.transcript.path
    transcript_append = append if append is not None else config.transcript.append
    sink = TranscriptLog()
    if transcript_path:
        try:
            sink.open(transcript_path, append=transcript_append)
        except OSError as e:
            _fatal(ctx, f"cannot open log file: {transcript_path}: {e.strerror}")

    console = ReportConsole()
    try:
        if list_file is not None:
            test_sets = read_test_list(list_file)
            console.line(f"\n{BANNER.format(list_name=os.path.basename(list_file))}")
        else:
            test_sets = build_test_list(tests)

        driver = SuiteDriver(harness, console=console, transcript=sink)
        success = asyncio.run(driver.run(test_sets))
    except TestListError as e:
        log.error("Cannot read test list", error=str(e))
        _fatal(ctx, str(e))
    except ProcessSetupError as e:
        log.critical("Fatal error while running tests", error=str(e), exc_info=True)
        _fatal(ctx, e.diagnostic())
    finally:
        sink.close()
        logging.shutdown()

    ctx.exit(0 if success else 1)


@click.command(name="single")
@click.argument("test")
@directory_options
@logging_options
@click.pass_context
def single_cli(ctx: click.Context, test: str, build_dir: Path | None, source_dir: Path | None, **kwargs):
    """Run a single test program and show its complete output."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    export_test_dirs(source_dir, build_dir)
    path = find_test(test, source_dir, build_dir)
    log.info("Replacing harness with test program", test=test, path=path)
    try:
        os.execv(path, [path])
    except OSError as e:
        _fatal(ctx, f"cannot exec {path}: {e.strerror}")


# 🔼⚙️
