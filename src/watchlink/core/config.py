"""Configuration classes for watchlink.

This module defines the settings a caller supplies once per watched root and
the ambient client configuration (timeouts, debug flag, injectable clock and
transport) threaded through every operation.
"""

from __future__ import annotations

import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchlink.core.telemetry import TelemetrySink

if TYPE_CHECKING:
    from watchlink.client.channel import Channel

DEFAULT_INIT_TIMEOUT = 60.0  # seconds
DEFAULT_EXEC_TIMEOUT = 120.0  # seconds
DEFAULT_MAX_READ_TIME = 20.0  # seconds
DEFAULT_MAX_RETRY_WAIT = 10.0  # seconds


@dataclass
class ClientConfig:
    """Ambient configuration for a watch service client.

    Attributes:
        debug: Log every request and response at DEBUG level.
        tmp_dir: Directory where crash markers are written.
        max_read_time: Cap on reading one line once data started arriving.
        exec_timeout: Default wait for a response to a request.
        max_retry_wait: Upper bound of one backoff sleep.
        sockname: Endpoint address override; skips discovery when set.
        telemetry: Sink notified about lifecycle events.
        locate_endpoint: ``timeout -> address`` discovery function
            (default: ask the ``watchman`` binary).
        connect: ``address -> Channel`` factory (default: Unix socket).
        clock: Wall clock used for deadlines and backoff windows.
        sleep: Sleep function used between retries.
    """

    debug: bool = False
    tmp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    max_read_time: float = DEFAULT_MAX_READ_TIME
    exec_timeout: float = DEFAULT_EXEC_TIMEOUT
    max_retry_wait: float = DEFAULT_MAX_RETRY_WAIT
    sockname: str | None = None
    telemetry: TelemetrySink = field(default_factory=TelemetrySink)
    locate_endpoint: Callable[[float], str] | None = None
    connect: Callable[[str], Channel] | None = None
    clock: Callable[[], float] = time.time
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        """Normalize tmp_dir."""
        self.tmp_dir = Path(self.tmp_dir)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Build a config from plain JSON values, ignoring unknown keys.

        Args:
            data: Mapping loaded from a config file.

        Returns:
            A new ClientConfig.
        """
        kwargs: dict[str, Any] = {}
        if "debug" in data:
            kwargs["debug"] = bool(data["debug"])
        if data.get("tmp_dir"):
            kwargs["tmp_dir"] = Path(data["tmp_dir"]).expanduser()
        for key in ("max_read_time", "exec_timeout", "max_retry_wait"):
            if key in data:
                kwargs[key] = float(data[key])
        if data.get("sockname"):
            kwargs["sockname"] = str(data["sockname"])
        return cls(**kwargs)


@dataclass(frozen=True)
class InitSettings:
    """Settings used to establish, and later reestablish, a connection.

    Attributes:
        root: Directory to watch.
        subscribe_to_changes: Stream changes (push) instead of querying (pull).
        init_timeout: Seconds allowed for endpoint discovery.
        config: Ambient client configuration.
    """

    root: Path
    subscribe_to_changes: bool = False
    init_timeout: float = DEFAULT_INIT_TIMEOUT
    config: ClientConfig = field(default_factory=ClientConfig, compare=False)

    def __post_init__(self) -> None:
        """Normalize root to a Path."""
        object.__setattr__(self, "root", Path(self.root))
