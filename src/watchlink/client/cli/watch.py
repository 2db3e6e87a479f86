"""Change-retrieval commands for the watchlink CLI.

Commands:
- files: List every watched file under a root
- changes: Print every change made during a settle window
- watch: Subscribe and print changes as they arrive
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from watchlink.client.instance import (
    get_all_files,
    get_changes,
    get_changes_synchronously,
    initialize,
)
from watchlink.client.types import Instance, is_alive
from watchlink.core.config import ClientConfig, InitSettings
from watchlink.core.types import WatchmanTimeout

logger = logging.getLogger(__name__)

root_argument = click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


def _connect(ctx: click.Context, root: Path, subscribe: bool) -> Instance:
    """Initialize an instance for root, exiting if the service is unreachable."""
    config: ClientConfig = ctx.obj["config"]
    settings = InitSettings(
        root=root.resolve(),
        subscribe_to_changes=subscribe,
        init_timeout=ctx.obj["init_timeout"],
        config=config,
    )
    instance = initialize(settings)
    if not is_alive(instance):
        click.echo(f"Error: Could not connect to watchman for {settings.root}.", err=True)
        sys.exit(1)
    return instance


def _echo_paths(paths: frozenset[str]) -> None:
    for path in sorted(paths):
        click.echo(path)


@click.command()
@root_argument
@click.pass_context
def files(ctx: click.Context, root: Path) -> None:
    """List every watched file under ROOT."""
    instance = _connect(ctx, root, subscribe=False)
    _echo_paths(get_all_files(instance))


@click.command()
@root_argument
@click.option("--settle", default=0.0, show_default=True, help="Seconds to let changes accumulate.")
@click.option("--timeout", default=30.0, show_default=True, help="Seconds allowed for the sync.")
@click.option("--subscribe", is_flag=True, help="Use a push subscription instead of queries.")
@click.pass_context
def changes(
    ctx: click.Context, root: Path, settle: float, timeout: float, subscribe: bool
) -> None:
    """Print every change made under ROOT during the settle window.

    The result is complete up to the moment the command returns: a marker
    file is planted and changes are read until the service reports it.
    """
    config: ClientConfig = ctx.obj["config"]
    instance = _connect(ctx, root, subscribe=subscribe)
    if settle > 0:
        config.sleep(settle)
    try:
        instance, paths = get_changes_synchronously(instance, timeout)
    except WatchmanTimeout as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    _echo_paths(paths)


@click.command()
@root_argument
@click.option(
    "--poll-interval",
    default=1.0,
    show_default=True,
    help="Seconds to wait for each batch of changes.",
)
@click.option("--max-batches", type=int, default=None, help="Stop after this many polls.")
@click.pass_context
def watch(ctx: click.Context, root: Path, poll_interval: float, max_batches: int | None) -> None:
    """Subscribe to ROOT and print changes as they arrive.

    Reconnects transparently if the watch service restarts.
    """
    config: ClientConfig = ctx.obj["config"]
    instance = _connect(ctx, root, subscribe=True)
    click.echo(f"Watching {root.resolve()} (Ctrl+C to stop)", err=True)

    polls = 0
    try:
        while max_batches is None or polls < max_batches:
            polls += 1
            try:
                instance, result = get_changes(instance, deadline=config.clock() + poll_interval)
            except WatchmanTimeout as e:
                if e.instance is not None:
                    instance = e.instance  # type: ignore[assignment]
                continue
            if not result.available:
                logger.debug("Watchman unavailable, waiting %.1fs", poll_interval)
                config.sleep(poll_interval)
                continue
            _echo_paths(result.files)
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
