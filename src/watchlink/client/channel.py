"""Line-oriented byte stream to the watch service.

This module provides:
- Channel: Socket wrapper with readiness checks and capped line reads
- connect_unix: Open a Channel on a Unix domain socket
- get_sockname: Discover the service socket by asking the watchman binary

Reads never rely on signals: readiness and line assembly are both bounded by
select() against a monotonic deadline.
"""

from __future__ import annotations

import json
import logging
import select
import socket
import subprocess
import time

from watchlink.core.types import ConnectionLost, PayloadTooLong

logger = logging.getLogger(__name__)

RECV_SIZE = 65536


class Channel:
    """Bidirectional newline-delimited channel over a connected socket.

    Incoming bytes are buffered here rather than in a file object so that
    readiness checks see data that already arrived but was not yet consumed.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._buffer = bytearray()
        self._closed = False
        self._pending = 0

    @property
    def closed(self) -> bool:
        """Check if the channel was closed."""
        return self._closed

    def fileno(self) -> int:
        """Return the underlying socket descriptor."""
        return self._sock.fileno()

    def send_line(self, text: str) -> None:
        """Write one line and newline terminator.

        Raises:
            ConnectionLost: If the peer went away.
        """
        try:
            self._sock.sendall(text.encode("utf-8") + b"\n")
        except BrokenPipeError as e:
            raise ConnectionLost("broken pipe") from e
        except ConnectionResetError as e:
            raise ConnectionLost("connection reset by peer") from e

    @property
    def pending(self) -> int:
        """Number of replies owed by the peer for requests that timed out."""
        return self._pending

    def abandon_reply(self) -> None:
        """Record that the reply to the last request will arrive late."""
        self._pending += 1

    def discard_pending(self, max_read_time: float) -> None:
        """Read and drop every reply owed for abandoned requests.

        Raises:
            PayloadTooLong: If an owed reply did not arrive within the cap,
                leaving the channel unable to resynchronize.
            ConnectionLost: On end of stream or connection reset.
        """
        while self._pending:
            if not self.wait_readable(max_read_time):
                raise PayloadTooLong(
                    f"Late reply still missing after {max_read_time:.1f}s "
                    f"({self._pending} owed)"
                )
            self.read_line(max_read_time)
            self._pending -= 1

    def wait_readable(self, timeout: float) -> bool:
        """Wait up to timeout seconds for input.

        Args:
            timeout: Seconds to wait; 0 polls without blocking.

        Returns:
            True if data is buffered or the socket is readable.
        """
        if self._buffer:
            return True
        ready, _, _ = select.select([self._sock], [], [], max(0.0, timeout))
        return bool(ready)

    def read_line(self, max_read_time: float) -> str:
        """Read one full line, giving up after max_read_time seconds.

        Args:
            max_read_time: Cap on assembling the line.

        Returns:
            The line without its terminator.

        Raises:
            PayloadTooLong: If no full line arrived within the cap.
            ConnectionLost: On end of stream or connection reset.
        """
        deadline = time.monotonic() + max_read_time
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                line = bytes(self._buffer[:newline])
                del self._buffer[: newline + 1]
                return line.decode("utf-8")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise PayloadTooLong(
                    f"No complete line after {max_read_time:.1f}s "
                    f"({len(self._buffer)} bytes buffered)"
                )
            ready, _, _ = select.select([self._sock], [], [], remaining)
            if not ready:
                continue

            try:
                chunk = self._sock.recv(RECV_SIZE)
            except ConnectionResetError as e:
                raise ConnectionLost("connection reset by peer") from e
            if not chunk:
                raise ConnectionLost("end of stream")
            self._buffer.extend(chunk)

    def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._sock.close()


def connect_unix(address: str) -> Channel:
    """Open a channel to a Unix domain socket.

    Args:
        address: Filesystem path of the socket.

    Returns:
        A connected Channel.
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    logger.debug("Connected to watchman at %s", address)
    return Channel(sock)


def get_sockname(timeout: float) -> str:
    """Ask the watchman binary where its socket lives.

    Args:
        timeout: Seconds allowed for the helper process.

    Returns:
        The socket path.

    Raises:
        subprocess.TimeoutExpired: If the helper did not answer in time.
        subprocess.CalledProcessError: If the helper failed.
        KeyError: If the answer has no ``sockname``.
    """
    result = subprocess.run(
        ["watchman", "get-sockname", "--no-pretty"],
        capture_output=True,
        check=True,
        text=True,
        timeout=timeout,
    )
    return str(json.loads(result.stdout)["sockname"])
