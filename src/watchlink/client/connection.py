"""Connection establishment and crash recording.

This module provides:
- crash_marker_path: Where failures for a root are recorded
- with_crash_record: Run a guarded call, recording any failure on disk
- initialize_env: Discover, connect, negotiate and watch a root

The crash marker is write-only: external diagnostics look for it, this
client never reads it back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from watchlink.client.channel import Channel, connect_unix, get_sockname
from watchlink.client.protocol import (
    capability_check,
    clock_request,
    exec_request,
    get_string,
    subscribe_request,
    watch_project,
)
from watchlink.client.types import AliveEnv
from watchlink.core.config import ClientConfig, InitSettings
from watchlink.core.types import InitError, WatchmanTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ESCAPES = {"\\": "zB", ":": "zC", "/": "zS", "\x00": "z0", "z": "zZ"}


def escape_root(root: Path | str) -> str:
    """Escape a path into a single, reversible file name component."""
    return "".join(_ESCAPES.get(ch, ch) for ch in str(root))


def crash_marker_path(root: Path | str, config: ClientConfig) -> Path:
    return config.tmp_dir / f".{escape_root(root)}.watchman_failed"


def _touch_crash_marker(root: Path, config: ClientConfig) -> None:
    marker = crash_marker_path(root, config)
    try:
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_bytes(b"")
    except OSError as e:
        logger.warning("Could not write crash marker %s: %s", marker, e)


def with_crash_record(settings: InitSettings, source: str, func: Callable[[], T]) -> T:
    """Call func, recording any exception in the crash marker before re-raising.

    Args:
        settings: Settings of the instance the call belongs to.
        source: Name of the operation, used in the log message.
        func: The guarded call.

    Returns:
        Whatever func returns.
    """
    try:
        return func()
    except Exception as e:
        _touch_crash_marker(settings.root, settings.config)
        if isinstance(e, WatchmanTimeout):
            logger.debug("Watchman %s timed out: %s", source, e)
        else:
            logger.exception("Watchman %s failed", source)
        raise


def _locate(settings: InitSettings) -> str:
    config = settings.config
    if config.sockname:
        return config.sockname
    locate = config.locate_endpoint or get_sockname
    return locate(settings.init_timeout)


def _connect(config: ClientConfig, address: str) -> Channel:
    connect = config.connect or connect_unix
    return connect(address)


def _establish(settings: InitSettings) -> AliveEnv:
    config = settings.config
    sockname = _locate(settings)
    channel = _connect(config, sockname)
    try:
        exec_request(channel, capability_check(["relative_root"]), config)
        response = exec_request(channel, watch_project(str(settings.root)), config)
        watch_root = get_string(response, "watch")
        relative_path = get_string(response, "relative_path", default="")

        response = exec_request(channel, clock_request(watch_root), config)
        env = AliveEnv(
            settings=settings,
            channel=channel,
            watch_root=watch_root,
            relative_path=relative_path,
            clockspec=get_string(response, "clock"),
        )
        if settings.subscribe_to_changes:
            exec_request(channel, subscribe_request(env), config)
    except Exception:
        channel.close()
        raise
    logger.info(
        "Watchman watching %s (watch root %s, clock %s)",
        settings.root,
        env.watch_root,
        env.clockspec,
    )
    return env


def initialize_env(settings: InitSettings) -> AliveEnv:
    """Establish a connection to the watch service for settings.root.

    Args:
        settings: Root, mode and config to initialize with.

    Returns:
        A new AliveEnv.

    Raises:
        InitError: If any step failed. The cause is chained.
    """
    try:
        return with_crash_record(settings, "init", lambda: _establish(settings))
    except Exception as e:
        raise InitError(f"Watchman initialization failed for {settings.root}: {e}") from e
