"""Shared pytest fixtures for watchlink tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fakes import FakeClock, FakeWatchman, RecordingTelemetry, make_config
from watchlink.core.config import ClientConfig, InitSettings


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock that only moves when told to."""
    return FakeClock()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    """A telemetry sink recording every event."""
    return RecordingTelemetry()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """A watched root with the VCS metadata directory markers go into."""
    root = tmp_path / "repo"
    (root / ".hg").mkdir(parents=True)
    return root


@pytest.fixture
def service(root: Path) -> FakeWatchman:
    """A scripted watch service for root."""
    return FakeWatchman(root)


@pytest.fixture
def config(
    tmp_path: Path,
    service: FakeWatchman,
    clock: FakeClock,
    telemetry: RecordingTelemetry,
) -> ClientConfig:
    """A client config wired to the fake service and clock."""
    return make_config(tmp_path, service, clock, telemetry)


@pytest.fixture
def settings(root: Path, config: ClientConfig) -> InitSettings:
    """Settings for a pull-mode (query) client."""
    return InitSettings(root=root, subscribe_to_changes=False, init_timeout=5.0, config=config)


@pytest.fixture
def push_settings(root: Path, config: ClientConfig) -> InitSettings:
    """Settings for a push-mode (subscription) client."""
    return InitSettings(root=root, subscribe_to_changes=True, init_timeout=5.0, config=config)
