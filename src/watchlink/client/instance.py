"""Alive/dead state machine and public entry points.

This module provides:
- initialize: Connect to the service, yielding an alive or dead instance
- get_changes: Retrieve one batch of changes
- get_changes_synchronously: Every change up to now, via the sync barrier
- get_all_files: Full inventory of watched files

Architecture:
    caller ─► instance API ─► maybe_restart_instance ─► connection.initialize_env
                   │
                   └─► call_on_instance ─► poller / barrier

Every call takes an instance value and returns its replacement. Connection
failures demote an alive instance to dead and surface as an unavailable
result; a dead instance is reinitialized once its backoff window elapsed.
Errors outside the recognized set terminate the process.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable

from watchlink.client.barrier import SyncBarrier, sync_marker
from watchlink.client.connection import initialize_env, with_crash_record
from watchlink.client.poller import (
    fetch_all_files,
    poll_for_updates,
    query_since,
    transform_changes,
)
from watchlink.client.retry import with_retries_until_deadline
from watchlink.client.types import (
    AliveEnv,
    ChangeResult,
    DeadEnv,
    Instance,
    get_settings,
)
from watchlink.core.config import InitSettings
from watchlink.core.types import (
    ConnectionLost,
    ExitStatus,
    FatalServiceError,
    InitError,
    PayloadTooLong,
    WatchmanTimeout,
)

logger = logging.getLogger(__name__)

BACKOFF_BASE = 4.0  # seconds
MAX_BACKOFF_EXPONENT = 3


def reinit_delay(attempts: int) -> float:
    """Seconds a dead instance waits (since death) before reinitializing."""
    return BACKOFF_BASE * 2.0 ** min(attempts, MAX_BACKOFF_EXPONENT)


def within_backoff_time(dead_env: DeadEnv, now: float) -> bool:
    """Check if dead_env is eligible for a reinitialization attempt at now."""
    return now >= dead_env.dead_since + reinit_delay(dead_env.reinit_attempts)


def initialize(settings: InitSettings) -> Instance:
    """Connect to the watch service.

    Returns:
        An AliveEnv, or a DeadEnv if the connection could not be established
        (later calls retry under the usual backoff rules).
    """
    try:
        return initialize_env(settings)
    except InitError as e:
        logger.warning("%s", e)
        return DeadEnv(
            prior_settings=settings,
            reinit_attempts=0,
            dead_since=settings.config.clock(),
        )


def maybe_restart_instance(instance: Instance) -> Instance:
    """Reinitialize a dead instance if its backoff window elapsed."""
    if isinstance(instance, AliveEnv):
        return instance

    config = instance.prior_settings.config
    if not within_backoff_time(instance, config.clock()):
        return instance

    logger.info(
        "Attempting to reestablish watchman subscription (attempt %d)",
        instance.reinit_attempts + 1,
    )
    try:
        env = initialize_env(instance.prior_settings)
    except InitError:
        logger.warning("Reestablishing watchman subscription failed.")
        config.telemetry.reconnect_failed()
        return DeadEnv(
            prior_settings=instance.prior_settings,
            reinit_attempts=instance.reinit_attempts + 1,
            dead_since=instance.dead_since,
        )
    logger.info("Watchman connection reestablished.")
    config.telemetry.reconnected()
    return env


def _mark_dead(env: AliveEnv, message: str) -> DeadEnv:
    logger.warning("%s. Closing channel", message)
    env.channel.close()
    config = env.settings.config
    config.telemetry.connection_lost()
    return DeadEnv.from_alive(env, config.clock())


def _fatal(instance: Instance, error: BaseException) -> FatalServiceError:
    """Log and report an unrecoverable failure.

    On the main thread the returned FatalServiceError is raised by the caller
    and exits the process. SystemExit only ends a worker thread, so off the
    main thread the process is terminated here.
    """
    message = f"{type(error).__name__}: {error}"
    logger.critical("Unrecoverable watchman failure: %s", message)
    get_settings(instance).config.telemetry.uncaught_failure(message)
    if threading.current_thread() is not threading.main_thread():
        logging.shutdown()
        os._exit(int(ExitStatus.WATCHMAN_FAILED))
    return FatalServiceError(message)


def call_on_instance(
    instance: Instance,
    source: str,
    func: Callable[[AliveEnv], ChangeResult],
) -> tuple[Instance, ChangeResult]:
    """Run func against an alive instance, handling connection death.

    Args:
        instance: Current instance.
        source: Operation name for logs and the crash record.
        func: Operation to run on the alive env.

    Returns:
        The (possibly replaced) instance and the result; unavailable when
        the instance is, or just became, dead.

    Raises:
        WatchmanTimeout: Propagated, with the current instance attached as
            ``instance``.
        FatalServiceError: For any error outside the recognized set.
    """
    instance = maybe_restart_instance(instance)
    if isinstance(instance, DeadEnv):
        return instance, ChangeResult.unavailable()

    env = instance
    try:
        result = with_crash_record(env.settings, source, lambda: func(env))
    except ConnectionLost as e:
        return _mark_dead(env, f"Watchman {e.reason}"), ChangeResult.unavailable()
    except PayloadTooLong:
        return _mark_dead(env, "Watchman reading payload too long"), ChangeResult.unavailable()
    except WatchmanTimeout as e:
        e.instance = env
        raise
    except Exception as e:
        raise _fatal(env, e) from e
    return env, result


def get_changes(
    instance: Instance, deadline: float | None = None
) -> tuple[Instance, ChangeResult]:
    """Retrieve the changes available now.

    Subscribed instances read what the service pushed; others issue a
    since-query on the current clock.

    Args:
        instance: Current instance.
        deadline: Absolute time to wait until. None means do not wait for
            pushed changes (and use the default timeout for queries).

    Returns:
        The (possibly replaced) instance and the change result.
    """
    timeout = None
    if deadline is not None:
        timeout = max(deadline - get_settings(instance).config.clock(), 0.0)

    def fetch(env: AliveEnv) -> ChangeResult:
        if env.settings.subscribe_to_changes:
            return ChangeResult.pushed(transform_changes(env, poll_for_updates(env, timeout)))
        return ChangeResult.synchronous(transform_changes(env, query_since(env, timeout)))

    return call_on_instance(instance, "get_changes", fetch)


def get_changes_synchronously(
    instance: Instance, timeout: float
) -> tuple[Instance, frozenset[str]]:
    """Collect every change up to now, waiting at most timeout seconds.

    Plants a marker file and accumulates changes until the service reports
    it. Marker creation failures and service unavailability are retried
    with exponential backoff until the deadline.

    Returns:
        The (possibly replaced) instance and every changed path observed,
        the marker included.

    Raises:
        WatchmanTimeout: If the deadline arrived first. The latest instance
            is attached as ``instance`` and must replace the caller's.
    """
    config = get_settings(instance).config
    deadline = config.clock() + timeout
    barrier = SyncBarrier(instance, get_changes, clock=config.clock)

    def attempt() -> frozenset[str]:
        with sync_marker(barrier.root) as marker:
            return barrier.wait_for(str(marker), deadline)

    try:
        files = with_retries_until_deadline(
            deadline,
            attempt,
            clock=config.clock,
            sleep=config.sleep,
            max_wait=config.max_retry_wait,
        )
    except WatchmanTimeout as e:
        if e.instance is None:
            e.instance = barrier.instance
        raise
    return barrier.instance, files


def get_all_files(instance: Instance) -> frozenset[str]:
    """List every watched file.

    A failure here means the service state cannot be trusted for initial
    population, so any error is fatal. This includes a dead instance:
    get_all_files never attempts reinitialization, even once the backoff
    window has elapsed, since it has no way to hand a new instance back.
    Call get_changes first to revive a dead instance.

    Raises:
        FatalServiceError: On any failure.
    """
    if isinstance(instance, DeadEnv):
        raise _fatal(instance, ConnectionLost("instance is dead"))
    env = instance
    try:
        return with_crash_record(env.settings, "get_all_files", lambda: fetch_all_files(env))
    except Exception as e:
        raise _fatal(env, e) from e
