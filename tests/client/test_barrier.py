"""Tests for sync markers and the sync barrier loop."""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path

import pytest

from tests.fakes import FakeClock
from watchlink.client.barrier import SyncBarrier, random_marker_path, sync_marker
from watchlink.client.retry import RetryWithBackoff
from watchlink.client.types import ChangeResult, DeadEnv, Instance
from watchlink.core.config import InitSettings
from watchlink.core.types import WatchmanTimeout


class ScriptedChanges:
    """get_changes replacement returning a fixed sequence of results."""

    def __init__(self, results: list[ChangeResult], instance: Instance) -> None:
        self._results: Iterator[ChangeResult] = iter(results)
        self.instance = instance
        self.calls: list[float | None] = []

    def __call__(
        self, instance: Instance, deadline: float | None = None
    ) -> tuple[Instance, ChangeResult]:
        self.calls.append(deadline)
        return self.instance, next(self._results, ChangeResult.pushed(frozenset()))


@pytest.fixture
def dead(settings: InitSettings) -> DeadEnv:
    """A placeholder instance value; the scripted source ignores it."""
    return DeadEnv(prior_settings=settings, reinit_attempts=0, dead_since=0.0)


class TestMarkerFiles:
    """Tests for planting sync markers."""

    def test_random_marker_path(self, root: Path) -> None:
        marker = random_marker_path(root)
        assert marker.parent == root / ".hg"
        assert re.fullmatch(r"\.[A-Za-z0-9]{10}\.tmp_sync", marker.name)

    def test_names_are_unique(self, root: Path) -> None:
        assert len({random_marker_path(root) for _ in range(50)}) == 50

    def test_marker_lifecycle(self, root: Path) -> None:
        """The marker exists, empty, inside the block and is gone after."""
        with sync_marker(root) as marker:
            assert marker.exists()
            assert marker.stat().st_size == 0
        assert not marker.exists()

    def test_marker_removed_on_error(self, root: Path) -> None:
        with pytest.raises(RuntimeError):
            with sync_marker(root) as marker:
                raise RuntimeError("boom")
        assert not marker.exists()

    def test_missing_directory_asks_for_retry(self, tmp_path: Path) -> None:
        """Creation failures are retryable rather than fatal."""
        with pytest.raises(RetryWithBackoff):
            with sync_marker(tmp_path / "no-vcs"):
                pass


class TestSyncBarrier:
    """Tests for the accumulate-until-marker loop."""

    def test_returns_union_once_marker_seen(self, dead: DeadEnv, clock: FakeClock) -> None:
        """Changes from every batch are kept, the marker included."""
        source = ScriptedChanges(
            [
                ChangeResult.pushed(frozenset({"/r/a.php"})),
                ChangeResult.pushed(frozenset()),
                ChangeResult.synchronous(frozenset({"/r/b.hh", "/r/.hg/.m.tmp_sync"})),
                ChangeResult.pushed(frozenset({"/r/never.php"})),
            ],
            dead,
        )
        barrier = SyncBarrier(dead, source, clock=clock)
        files = barrier.wait_for("/r/.hg/.m.tmp_sync", clock.now + 10)
        assert files == {"/r/a.php", "/r/b.hh", "/r/.hg/.m.tmp_sync"}
        assert len(source.calls) == 3
        assert source.calls[0] == 1010.0

    def test_timeout_when_marker_never_seen(self, dead: DeadEnv) -> None:
        """Without the marker the loop ends exactly at the deadline."""
        clock = FakeClock(start=1000.0, tick=1.0)
        source = ScriptedChanges([], dead)
        barrier = SyncBarrier(dead, source, clock=clock)
        with pytest.raises(WatchmanTimeout):
            barrier.wait_for("/r/.hg/.m.tmp_sync", 1010.0)
        assert len(source.calls) == 10

    def test_unavailable_asks_for_retry(self, dead: DeadEnv, clock: FakeClock) -> None:
        """A dead service is retried with backoff; state survives on the barrier."""
        replacement = DeadEnv(prior_settings=dead.prior_settings, reinit_attempts=1, dead_since=0.0)
        source = ScriptedChanges(
            [ChangeResult.pushed(frozenset({"/r/a.php"})), ChangeResult.unavailable()],
            replacement,
        )
        barrier = SyncBarrier(dead, source, clock=clock)
        with pytest.raises(RetryWithBackoff):
            barrier.wait_for("/r/.hg/.m.tmp_sync", clock.now + 10)
        assert barrier.instance is replacement
        assert barrier.changes == {"/r/a.php"}
