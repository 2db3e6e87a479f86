"""Synchronization barrier over incremental change delivery.

This module provides:
- random_marker_path: Unique marker file name under the VCS metadata dir
- sync_marker: Create a marker file for the duration of a block
- SyncBarrier: Accumulate changes until the marker's own creation shows up

Once the service reports the marker we planted, every change that happened
before the marker was created has been delivered too.
"""

from __future__ import annotations

import contextlib
import logging
import os
import secrets
import string
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from watchlink.client.protocol import SYNC_FILE_EXTENSION
from watchlink.client.retry import RetryWithBackoff
from watchlink.client.types import ChangeResult, Instance, get_root_path
from watchlink.core.types import WatchmanTimeout

logger = logging.getLogger(__name__)

# TODO: support git checkouts, which have no .hg directory to plant markers in.
VCS_TMP_DIR = ".hg"
MARKER_ID_LENGTH = 10
_ALPHANUMERIC = string.ascii_letters + string.digits

GetChanges = Callable[..., tuple[Instance, ChangeResult]]


def random_marker_path(root: Path) -> Path:
    name = "".join(secrets.choice(_ALPHANUMERIC) for _ in range(MARKER_ID_LENGTH))
    return Path(root) / VCS_TMP_DIR / f".{name}.{SYNC_FILE_EXTENSION}"


@contextlib.contextmanager
def sync_marker(root: Path) -> Iterator[Path]:
    """Create a fresh zero-byte marker file, removing it on exit.

    Creation is exclusive, so concurrent clients on the same root never
    share a marker.

    Raises:
        RetryWithBackoff: If the marker could not be created (directory
            missing or unwritable, name collision).
    """
    marker = random_marker_path(root)
    try:
        fd = os.open(marker, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o555)
    except OSError as e:
        logger.info("Could not create sync marker %s: %s", marker, e)
        raise RetryWithBackoff(f"sync marker not created: {e}") from e
    os.close(fd)
    try:
        yield marker
    finally:
        with contextlib.suppress(FileNotFoundError):
            marker.unlink()


class SyncBarrier:
    """Drives change retrieval until a planted marker is observed.

    The instance and the accumulated changes live on the barrier so that
    they survive retries of wait_for.

    Usage:
        barrier = SyncBarrier(instance, get_changes)
        with sync_marker(barrier.root) as marker:
            files = barrier.wait_for(str(marker), deadline)
        instance = barrier.instance
    """

    def __init__(
        self,
        instance: Instance,
        get_changes: GetChanges,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the barrier.

        Args:
            instance: Instance to retrieve changes from.
            get_changes: ``(instance, deadline=...) -> (instance, ChangeResult)``.
            clock: Time source matching the deadlines passed to wait_for.
        """
        self.instance = instance
        self.changes: set[str] = set()
        self._get_changes = get_changes
        self._clock = clock

    @property
    def root(self) -> Path:
        return get_root_path(self.instance)

    def wait_for(self, sync_file: str, deadline: float) -> frozenset[str]:
        """Accumulate changes until sync_file is among them.

        Args:
            sync_file: Absolute path of the planted marker.
            deadline: Absolute time after which WatchmanTimeout is raised.

        Returns:
            Every path observed so far, the marker included.

        Raises:
            WatchmanTimeout: If the deadline arrived first.
            RetryWithBackoff: If the service is unavailable.
        """
        while True:
            if self._clock() >= deadline:
                raise WatchmanTimeout(f"Sync marker {sync_file} not observed before deadline")
            self.instance, result = self._get_changes(self.instance, deadline=deadline)
            if not result.available:
                raise RetryWithBackoff("watchman unavailable")
            self.changes.update(result.files)
            if sync_file in self.changes:
                return frozenset(self.changes)
