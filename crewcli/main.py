"""
crewcli — CLI entrypoint.

Usage:
    crewcli --help
    crewcli gcp install --project my-project --token abc123
    crewcli gcp upgrade --vm flightcrew-control-tower
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from crewcli import __version__
from crewcli.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="crewcli")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to crewcli.yml (default: auto-detect).",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a debug log of the session to this file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """crewcli — install and upgrade the Flightcrew Control Tower."""
    from crewcli.core.config.loader import ConfigError, load_config

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["log_file"] = log_file

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    ctx.obj["config"] = config

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        flag_level = "DEBUG"
    elif verbose:
        flag_level = "INFO"
    elif quiet:
        flag_level = "ERROR"
    else:
        flag_level = None

    setup_logging(
        level=resolve_level(flag_level, config.log_level),
        quiet_third_party=not debug,
    )


# ── Register sub-command groups from crewcli/ui/cli/ ─────────────

from crewcli.ui.cli.gcp import gcp  # noqa: E402

cli.add_command(gcp)


if __name__ == "__main__":
    cli()
