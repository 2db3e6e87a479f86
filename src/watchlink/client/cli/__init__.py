"""Command-line interface for watchlink.

This module provides the main CLI entry point and assembles all commands.

Commands:
- files: List every watched file under a root
- changes: Print every change made during a settle window
- watch: Subscribe and print changes as they arrive
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from watchlink.client.cli.config import (
    build_client_config,
    get_config_dir,
    get_config_file,
    load_config,
)
from watchlink.client.cli.watch import changes, files, watch
from watchlink.core.config import DEFAULT_INIT_TIMEOUT


def _setup_logging(verbose: bool, debug: bool) -> None:
    """Send watchlink logs to stderr."""
    logging.basicConfig(format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.getLogger("watchlink").setLevel(level)


@click.group()
@click.version_option(package_name="watchlink")
@click.option("--verbose", "-v", is_flag=True, help="Log connection state changes.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.watchlink/config.json).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """watchlink - Incremental file changes from Watchman."""
    data = load_config(config_path)
    config = build_client_config(data)
    _setup_logging(verbose, config.debug)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["init_timeout"] = float(data.get("init_timeout", DEFAULT_INIT_TIMEOUT))


cli.add_command(files)
cli.add_command(changes)
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "build_client_config",
    "get_config_dir",
    "get_config_file",
    "load_config",
]
