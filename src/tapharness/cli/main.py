# src/tapharness/cli/main.py

"""
Main CLI entry point for tapharness using Click.
Handles global options like logging level.
"""

import click
import structlog

from tapharness import __version__
from tapharness.cli.config_cmds import config_cli
from tapharness.cli.run_cmds import run_cli, single_cli
from tapharness.cli.utils import logging_options, setup_logging_from_context
from tapharness.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", package_name="tapharness")
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    Tapharness: runs TAP test programs and summarizes their results.

    Configuration precedence: CLI options > Environment Variables > Config File > Defaults.
    """
    ctx.ensure_object(dict)

    ctx.obj["LOG_LEVEL"] = log_level
    ctx.obj["LOG_FILE"] = log_file
    ctx.obj["JSON_LOGS"] = json_logs if json_logs is not None else False

    setup_logging_from_context(ctx, default_log_level="WARNING")
    log.debug(
        "Main CLI group initialized",
        log_level=log_level,
        log_file=log_file,
        json_logs=json_logs,
    )


cli.add_command(config_cli)
cli.add_command(run_cli)
cli.add_command(single_cli)

if __name__ == "__main__":
    cli()

# 🖥️⚙️
