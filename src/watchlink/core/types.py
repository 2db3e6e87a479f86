"""Shared error types and exit statuses for watchlink.

This module provides:
- ErrorKind: The explicit kind carried by every watchlink error
- WatchmanError and one subclass per kind
- ExitStatus, FatalServiceError: Process termination for unrecoverable failures
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ErrorKind(Enum):
    """Kind of failure reported by the watch service client."""

    PROTOCOL = "protocol"  # Service reported an error or sent garbage
    TIMEOUT = "timeout"  # Deadline exceeded, always surfaces to the caller
    PAYLOAD_TOO_LONG = "payload_too_long"  # Peer stalled mid-message
    CONNECTION_LOST = "connection_lost"  # Broken pipe, reset, end of stream
    INIT = "init"  # Connection could not be established


class ExitStatus(IntEnum):
    """Process exit statuses used by watchlink.

    The parent process relies on WATCHMAN_FAILED to tell a watch service
    failure apart from an ordinary crash.
    """

    OK = 0
    WATCHMAN_FAILED = 103


class WatchmanError(Exception):
    """Base exception for watch service errors."""

    kind: ErrorKind = ErrorKind.PROTOCOL


class WatchmanProtocolError(WatchmanError):
    """The service answered with an ``error`` key or a malformed response."""

    kind = ErrorKind.PROTOCOL


class WatchmanTimeout(WatchmanError):
    """A caller-supplied timeout or deadline expired.

    Attributes:
        instance: Latest instance value when raised from an operation that
            may have replaced it (see get_changes_synchronously), else None.
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = "Watchman request timed out") -> None:
        super().__init__(message)
        self.instance: object | None = None


class PayloadTooLong(WatchmanError):
    """Data started arriving but no full line came within the read cap.

    Part of the payload may already be consumed, so the channel cannot be
    trusted to resynchronize on the next read.
    """

    kind = ErrorKind.PAYLOAD_TOO_LONG


class ConnectionLost(WatchmanError):
    """The connection to the service is gone.

    Attributes:
        reason: Short description (broken pipe, connection reset, end of stream).
    """

    kind = ErrorKind.CONNECTION_LOST

    def __init__(self, reason: str) -> None:
        super().__init__(f"Watchman connection lost: {reason}")
        self.reason = reason


class InitError(WatchmanError):
    """Establishing a connection to the service failed at some step."""

    kind = ErrorKind.INIT


class FatalServiceError(SystemExit):
    """Unrecoverable watch service failure; terminates the process.

    Derives from SystemExit so that, unless explicitly caught, the process
    exits with ExitStatus.WATCHMAN_FAILED.
    """

    def __init__(self, message: str) -> None:
        super().__init__(int(ExitStatus.WATCHMAN_FAILED))
        self.message = message

    def __str__(self) -> str:
        return self.message
