"""Change retrieval from an alive connection.

This module provides:
- poll_for_updates: Push mode, read what the subscription delivered
- query_since: Pull mode, explicit since-query on the current clock
- transform_changes: Advance the clock and translate names to absolute paths
- fetch_all_files: One-shot inventory of every watched file
"""

from __future__ import annotations

import logging
import os
from typing import Any

from watchlink.client.protocol import (
    all_query,
    exec_request,
    get_string,
    sanitize_response,
    since_query,
)
from watchlink.client.types import AliveEnv
from watchlink.core.types import PayloadTooLong, WatchmanProtocolError, WatchmanTimeout

logger = logging.getLogger(__name__)


def no_updates_response(clockspec: str) -> dict[str, Any]:
    return {"files": [], "clock": clockspec}


def poll_for_updates(env: AliveEnv, timeout: float | None = None) -> dict[str, Any]:
    """Read one pushed notification from the subscription stream.

    Args:
        env: Alive instance subscribed to changes.
        timeout: Seconds to wait for a notification. 0 (the default) only
            checks what already arrived.

    Returns:
        The notification, or an empty change set on the current clock when
        nothing arrived and timeout is 0.

    Raises:
        WatchmanTimeout: Nothing arrived within a positive timeout.
        PayloadTooLong: A notification started but did not complete in time.
    """
    timeout = timeout or 0.0
    config = env.settings.config
    if not env.channel.wait_readable(timeout):
        if timeout == 0.0:
            return no_updates_response(env.clockspec)
        config.telemetry.protocol_timeout()
        raise WatchmanTimeout(f"No watchman notification after {timeout:.1f}s")

    try:
        output = env.channel.read_line(config.max_read_time)
    except PayloadTooLong:
        logger.warning("Watchman.poll_for_updates timed out reading payload")
        raise
    return sanitize_response(output, config)


def query_since(env: AliveEnv, timeout: float | None = None) -> dict[str, Any]:
    """Ask for every change since env.clockspec."""
    return exec_request(env.channel, since_query(env), env.settings.config, timeout)


def extract_file_names(env: AliveEnv, response: dict[str, Any]) -> list[str]:
    """Translate the names of a response into absolute paths.

    Raises:
        WatchmanProtocolError: If ``files`` is missing or not a list of strings.
    """
    files = response.get("files")
    if not isinstance(files, list):
        raise WatchmanProtocolError("Watchman response has no 'files' list")
    paths = []
    for name in files:
        if not isinstance(name, str):
            raise WatchmanProtocolError(f"Unexpected file entry: {name!r}")
        paths.append(os.path.join(env.watch_root, env.relative_path, name))
    return paths


def transform_changes(env: AliveEnv, response: dict[str, Any]) -> frozenset[str]:
    """Advance env.clockspec to the response clock and return its paths.

    The response is fully validated before the clock moves, so a malformed
    response leaves env untouched.
    """
    clock = get_string(response, "clock")
    paths = frozenset(extract_file_names(env, response))
    env.clockspec = clock
    return paths


def fetch_all_files(env: AliveEnv) -> frozenset[str]:
    """Query every existing watched file and advance the clock."""
    response = exec_request(env.channel, all_query(env), env.settings.config)
    files = transform_changes(env, response)
    logger.info("Watchman reported %d files under %s", len(files), env.settings.root)
    return files
