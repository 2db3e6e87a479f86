"""Watchman JSON protocol: request builders and request/response handling.

This module provides:
- Request builders: capability_check, watch_project, clock_request,
  all_query, since_query, subscribe_request
- sanitize_response: Parse one response line and surface warnings/errors
- exec_request: Send one request and read one response under nested timeouts

Wire format:
    Requests are single-line JSON arrays, responses single-line JSON objects.
    See https://facebook.github.io/watchman/docs/socket-interface.html
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from watchlink.core.types import WatchmanProtocolError, WatchmanTimeout

if TYPE_CHECKING:
    from watchlink.client.channel import Channel
    from watchlink.client.types import AliveEnv
    from watchlink.core.config import ClientConfig

logger = logging.getLogger(__name__)

SYNC_FILE_EXTENSION = "tmp_sync"
SUBSCRIPTION_NAME = "hh_type_check_watcher"

WATCHED_SUFFIXES = ("php", "phpt", "hh", "hhi", SYNC_FILE_EXTENSION, "xhp", "js")
# .hg is not excluded: sync markers are planted there.
EXCLUDED_DIRNAMES = (".git", ".svn")


def _pred(name: str, *args: Any) -> list[Any]:
    """Build a watchman predicate term, e.g. ["allof", ...]."""
    return [name, *args]


def file_expression(extra: list[Any] | None = None) -> list[Any]:
    """Build the filter expression shared by queries and subscriptions.

    Args:
        extra: Terms prepended inside the top-level ``allof``.

    Returns:
        The expression as a JSON-ready list.
    """
    return _pred(
        "allof",
        *(extra or []),
        ["type", "f"],
        _pred(
            "anyof",
            ["name", ".hhconfig"],
            _pred("anyof", *(["suffix", s] for s in WATCHED_SUFFIXES)),
        ),
        _pred("not", _pred("anyof", *(["dirname", d] for d in EXCLUDED_DIRNAMES))),
    )


def _request(
    command: str,
    env: AliveEnv,
    extra_kv: dict[str, Any] | None = None,
    extra_expressions: list[Any] | None = None,
) -> list[Any]:
    header: list[Any] = [command, env.watch_root]
    if command == "subscribe":
        header.append(SUBSCRIPTION_NAME)
    directives: dict[str, Any] = dict(extra_kv or {})
    directives["fields"] = ["name"]
    directives["relative_root"] = env.relative_path
    directives["expression"] = file_expression(extra_expressions)
    return [*header, directives]


def capability_check(required: list[str], optional: list[str] | None = None) -> list[Any]:
    """Build a version request asserting capabilities."""
    return ["version", {"optional": list(optional or []), "required": list(required)}]


def watch_project(root: str) -> list[Any]:
    return ["watch-project", root]


def clock_request(watch_root: str) -> list[Any]:
    return ["clock", watch_root]


def all_query(env: AliveEnv) -> list[Any]:
    """Query every existing file under the watched root."""
    return _request("query", env, extra_expressions=["exists"])


def since_query(env: AliveEnv) -> list[Any]:
    """Query files changed since env.clockspec."""
    return _request("query", env, extra_kv={"since": env.clockspec})


def subscribe_request(env: AliveEnv) -> list[Any]:
    """Subscribe to changes since env.clockspec.

    Notifications caused by an ``hg.update`` are deferred until the update
    finishes, so a half-applied checkout is never observed.
    """
    return _request(
        "subscribe",
        env,
        extra_kv={"since": env.clockspec, "defer": ["hg.update"]},
    )


def sanitize_response(output: str, config: ClientConfig) -> dict[str, Any]:
    """Parse one response line and check it for service-reported problems.

    Args:
        output: Raw response line.
        config: Client config (debug logging, telemetry).

    Returns:
        The decoded response object.

    Raises:
        WatchmanProtocolError: If the line is not a JSON object or carries
            an ``error`` key.
    """
    if config.debug:
        logger.debug("Watchman response: %s", output)
    try:
        response = json.loads(output)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse string as JSON: %s", output[:200])
        raise WatchmanProtocolError(f"Malformed watchman response: {e}") from e
    if not isinstance(response, dict):
        raise WatchmanProtocolError(f"Expected a JSON object, got: {output[:200]}")

    warning = response.get("warning")
    if warning is not None:
        config.telemetry.service_warning(str(warning))
        logger.warning("Watchman warning: %s", warning)

    error = response.get("error")
    if error is not None:
        config.telemetry.service_error(str(error))
        raise WatchmanProtocolError(str(error))
    return response


def get_string(response: dict[str, Any], key: str, default: str | None = None) -> str:
    """Read a string field from a response.

    Raises:
        WatchmanProtocolError: If the field is missing (and no default is
            given) or is not a string.
    """
    value = response.get(key, default)
    if value is None:
        raise WatchmanProtocolError(f"Watchman response has no {key!r}")
    if not isinstance(value, str):
        raise WatchmanProtocolError(f"Watchman response {key!r} is not a string")
    return value


def exec_request(
    channel: Channel,
    request: list[Any],
    config: ClientConfig,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Send one request and read its response.

    The outer timeout only bounds the wait for the first byte. Once data is
    readable the line must arrive within config.max_read_time, otherwise the
    peer is considered stalled. A reply abandoned on timeout is still owed by
    the service; it is read and dropped before the next request goes out so
    that replies stay paired with their requests.

    Args:
        channel: Open channel to the service.
        request: JSON-ready request array.
        config: Client config.
        timeout: Seconds to wait for a response (default config.exec_timeout).

    Returns:
        The sanitized response object.

    Raises:
        WatchmanTimeout: If no response started within timeout.
        PayloadTooLong: If the response, or a reply owed for an earlier
            timed-out request, did not complete within the read cap.
        ConnectionLost: If the connection broke.
        WatchmanProtocolError: If the service reported an error.
    """
    if timeout is None:
        timeout = config.exec_timeout
    payload = json.dumps(request, separators=(",", ":"))
    if config.debug:
        logger.debug("Watchman request: %s", payload)
    channel.discard_pending(config.max_read_time)
    channel.send_line(payload)

    if not channel.wait_readable(timeout):
        channel.abandon_reply()
        config.telemetry.protocol_timeout()
        raise WatchmanTimeout(f"No watchman response to {request[0]!r} after {timeout:.1f}s")
    return sanitize_response(channel.read_line(config.max_read_time), config)
