"""Instance and result types for the watch service client.

This module provides:
- AliveEnv: Connected instance state
- DeadEnv: Disconnected instance state awaiting reinitialization
- Instance: Tagged union of the two, discriminated by type
- ChangeKind, ChangeResult: How (and whether) a change set was obtained
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from watchlink.core.config import InitSettings

if TYPE_CHECKING:
    from watchlink.client.channel import Channel


@dataclass(eq=False)
class AliveEnv:
    """A live connection to the watch service.

    Attributes:
        settings: Settings the connection was established with.
        channel: Open channel, owned exclusively by this instance.
        watch_root: Root the service actually watches (may be an ancestor
            of settings.root).
        relative_path: settings.root relative to watch_root ("" if equal).
        clockspec: Logical clock of the last response consumed. The only
            field mutated in place.
            See https://facebook.github.io/watchman/docs/clockspec.html
    """

    settings: InitSettings
    channel: Channel
    watch_root: str
    relative_path: str
    clockspec: str


@dataclass(frozen=True)
class DeadEnv:
    """A watch service connection that died (service restarted, upgraded,
    or killed) and may be reestablished.

    Attributes:
        prior_settings: Settings reused for reinitialization.
        reinit_attempts: Failed reinitializations since death.
        dead_since: Wall-clock time of death.
    """

    prior_settings: InitSettings
    reinit_attempts: int
    dead_since: float

    @classmethod
    def from_alive(cls, env: AliveEnv, now: float) -> DeadEnv:
        return cls(prior_settings=env.settings, reinit_attempts=0, dead_since=now)


Instance = AliveEnv | DeadEnv


def get_settings(instance: Instance) -> InitSettings:
    """Return the settings an instance was (or will be) initialized with."""
    if isinstance(instance, DeadEnv):
        return instance.prior_settings
    return instance.settings


def get_root_path(instance: Instance) -> Path:
    """Return the root directory an instance watches."""
    return get_settings(instance).root


def is_alive(instance: Instance) -> bool:
    return isinstance(instance, AliveEnv)


class ChangeKind(Enum):
    """How a change set was obtained."""

    UNAVAILABLE = "unavailable"  # Service dead, nothing retrieved
    PUSHED = "pushed"  # Read from the subscription stream
    SYNCHRONOUS = "synchronous"  # Answer to an explicit since-query


@dataclass(frozen=True)
class ChangeResult:
    """Result of one change retrieval."""

    kind: ChangeKind
    files: frozenset[str] = frozenset()

    @classmethod
    def unavailable(cls) -> ChangeResult:
        return cls(ChangeKind.UNAVAILABLE)

    @classmethod
    def pushed(cls, files: frozenset[str]) -> ChangeResult:
        return cls(ChangeKind.PUSHED, frozenset(files))

    @classmethod
    def synchronous(cls, files: frozenset[str]) -> ChangeResult:
        return cls(ChangeKind.SYNCHRONOUS, frozenset(files))

    @property
    def available(self) -> bool:
        return self.kind is not ChangeKind.UNAVAILABLE
