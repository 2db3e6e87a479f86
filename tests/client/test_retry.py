"""Tests for deadline-bounded retry with exponential backoff."""

from __future__ import annotations

import pytest

from tests.fakes import FakeClock
from watchlink.client.retry import (
    RetryWithBackoff,
    backoff_delay,
    with_retries_until_deadline,
)
from watchlink.core.types import WatchmanTimeout


def test_backoff_delay_is_capped() -> None:
    assert [backoff_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_first_success_does_not_sleep(clock: FakeClock) -> None:
    result = with_retries_until_deadline(
        clock.now + 60, lambda: "done", clock=clock, sleep=clock.sleep
    )
    assert result == "done"
    assert clock.sleeps == []


def test_retries_with_exponential_backoff(clock: FakeClock) -> None:
    """Each retry sleeps twice as long as the previous one, up to the cap."""
    attempts = []

    def body() -> str:
        attempts.append(clock.now)
        if len(attempts) < 6:
            raise RetryWithBackoff("not yet")
        return "done"

    result = with_retries_until_deadline(
        clock.now + 600, body, clock=clock, sleep=clock.sleep
    )
    assert result == "done"
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_timeout_at_deadline(clock: FakeClock) -> None:
    """The retry signal never escapes; the deadline turns into a Timeout."""
    deadline = clock.now + 5

    def body() -> None:
        raise RetryWithBackoff("never")

    with pytest.raises(WatchmanTimeout):
        with_retries_until_deadline(deadline, body, clock=clock, sleep=clock.sleep)
    assert clock.sleeps == [1.0, 2.0, 2.0]
    assert clock.now == deadline


def test_other_errors_propagate(clock: FakeClock) -> None:
    def body() -> None:
        raise ValueError("bad")

    with pytest.raises(ValueError):
        with_retries_until_deadline(clock.now + 60, body, clock=clock, sleep=clock.sleep)
    assert clock.sleeps == []


def test_deadline_already_passed(clock: FakeClock) -> None:
    calls = []
    with pytest.raises(WatchmanTimeout):
        with_retries_until_deadline(
            clock.now - 1, lambda: calls.append(1), clock=clock, sleep=clock.sleep
        )
    assert calls == []
