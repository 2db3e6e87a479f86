"""watchlink - Fault-tolerant Watchman client for incremental file change delivery."""

from watchlink.client import (
    AliveEnv,
    ChangeKind,
    ChangeResult,
    DeadEnv,
    Instance,
    get_all_files,
    get_changes,
    get_changes_synchronously,
    initialize,
)
from watchlink.core import (
    ClientConfig,
    ExitStatus,
    FatalServiceError,
    InitSettings,
    TelemetrySink,
    WatchmanError,
    WatchmanTimeout,
)

__all__ = [
    "AliveEnv",
    "ChangeKind",
    "ChangeResult",
    "ClientConfig",
    "DeadEnv",
    "ExitStatus",
    "FatalServiceError",
    "InitSettings",
    "Instance",
    "TelemetrySink",
    "WatchmanError",
    "WatchmanTimeout",
    "get_all_files",
    "get_changes",
    "get_changes_synchronously",
    "initialize",
]
