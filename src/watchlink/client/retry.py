"""Deadline-bounded retry with exponential backoff.

This module provides:
- RetryWithBackoff: Raised by a body to ask for another attempt
- with_retries_until_deadline: Run a body until it succeeds or time runs out

RetryWithBackoff is internal: it is only ever raised inside a body passed to
with_retries_until_deadline, which always consumes it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from watchlink.core.config import DEFAULT_MAX_RETRY_WAIT
from watchlink.core.types import WatchmanTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryWithBackoff(Exception):
    """Transient condition; retry the body after a backoff sleep."""


def backoff_delay(attempt: int, max_wait: float = DEFAULT_MAX_RETRY_WAIT) -> float:
    """Seconds to wait before retry number attempt (0-based)."""
    return min(max_wait, 2.0**attempt)


def with_retries_until_deadline(
    deadline: float,
    body: Callable[[], T],
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
    max_wait: float = DEFAULT_MAX_RETRY_WAIT,
) -> T:
    """Call body, retrying with exponential backoff while it asks to.

    Args:
        deadline: Absolute time (per clock) after which no attempt starts.
        body: Callable that returns a result or raises RetryWithBackoff.
            State that must survive retries belongs in its closure.
        clock: Time source matching deadline.
        sleep: Sleep function.
        max_wait: Upper bound of one sleep.

    Returns:
        Result of the first successful attempt.

    Raises:
        WatchmanTimeout: If the deadline passed before body succeeded.
    """
    attempt = 0
    while True:
        if clock() >= deadline:
            raise WatchmanTimeout("Deadline reached before watchman sync completed")
        try:
            return body()
        except RetryWithBackoff as e:
            now = clock()
            if now >= deadline:
                raise WatchmanTimeout(
                    "Deadline reached before watchman sync completed"
                ) from None
            wait = min(backoff_delay(attempt, max_wait), max(0.0, deadline - now))
            logger.info(
                "Attempt %d needs a retry (%s). Retrying in %.1fs...",
                attempt + 1,
                e,
                wait,
            )
            sleep(wait)
            attempt += 1
