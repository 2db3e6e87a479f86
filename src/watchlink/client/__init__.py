"""Watch service client.

Architecture:
    instance (state machine) ─► connection ─► protocol ─► channel
             │
             ├─► poller   (push-poll, since-query, full inventory)
             └─► barrier  (sync marker) ◄─ retry (backoff until deadline)

Components:
- **Channel**: Newline-delimited socket I/O with readiness checks and capped reads
- **protocol**: Request builders and one-request/one-response exchange
- **connection**: Endpoint discovery, capability negotiation, watch, clock, subscribe
- **poller**: Change retrieval in push or pull mode
- **barrier**: Sync marker planting and accumulation until it is observed
- **retry**: Deadline-bounded exponential backoff
- **instance**: Alive/dead transitions and the public entry points
"""

from watchlink.client.barrier import SyncBarrier, random_marker_path, sync_marker
from watchlink.client.channel import Channel, connect_unix, get_sockname
from watchlink.client.connection import crash_marker_path, initialize_env
from watchlink.client.instance import (
    call_on_instance,
    get_all_files,
    get_changes,
    get_changes_synchronously,
    initialize,
    maybe_restart_instance,
)
from watchlink.client.retry import with_retries_until_deadline
from watchlink.client.types import (
    AliveEnv,
    ChangeKind,
    ChangeResult,
    DeadEnv,
    Instance,
    get_root_path,
    is_alive,
)

__all__ = [
    # Public API
    "initialize",
    "get_changes",
    "get_changes_synchronously",
    "get_all_files",
    # State machine
    "call_on_instance",
    "maybe_restart_instance",
    # Types
    "AliveEnv",
    "ChangeKind",
    "ChangeResult",
    "DeadEnv",
    "Instance",
    "get_root_path",
    "is_alive",
    # Building blocks
    "Channel",
    "SyncBarrier",
    "connect_unix",
    "crash_marker_path",
    "get_sockname",
    "initialize_env",
    "random_marker_path",
    "sync_marker",
    "with_retries_until_deadline",
]
