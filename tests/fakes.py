"""Scripted stand-ins for the watch service used across client tests."""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchlink.core.config import ClientConfig
from watchlink.core.telemetry import TelemetrySink

Responder = Callable[[list[Any]], "dict[str, Any] | str | BaseException | None"]


class FakeClock:
    """Manually driven wall clock.

    Every read advances time by ``tick`` so that loops polling the clock
    always make progress.
    """

    def __init__(self, start: float = 1000.0, tick: float = 0.0) -> None:
        self.now = start
        self.tick = tick
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        current = self.now
        self.now += self.tick
        return current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTelemetry(TelemetrySink):
    """Telemetry sink that records every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str | None]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def connection_lost(self) -> None:
        self.events.append(("connection_lost", None))

    def reconnected(self) -> None:
        self.events.append(("reconnected", None))

    def reconnect_failed(self) -> None:
        self.events.append(("reconnect_failed", None))

    def protocol_timeout(self) -> None:
        self.events.append(("protocol_timeout", None))

    def uncaught_failure(self, message: str) -> None:
        self.events.append(("uncaught_failure", message))

    def service_warning(self, message: str) -> None:
        self.events.append(("service_warning", message))

    def service_error(self, message: str) -> None:
        self.events.append(("service_error", message))


class FakeChannel:
    """In-memory channel fed by a responder and by explicit pushes.

    Queued exceptions are raised by read_line in order, which simulates a
    stalled or vanished peer.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        wait_hook: Callable[[FakeChannel], None] | None = None,
    ) -> None:
        self.responder = responder
        self.wait_hook = wait_hook
        self.requests: list[list[Any]] = []
        self.raw_lines: list[str] = []
        self.incoming: deque[str | BaseException] = deque()
        self.send_error: BaseException | None = None
        self.closed = False
        self.pending = 0

    def queue(self, item: dict[str, Any] | str | BaseException) -> None:
        if isinstance(item, dict):
            item = json.dumps(item)
        self.incoming.append(item)

    def abandon_reply(self) -> None:
        self.pending += 1

    def discard_pending(self, max_read_time: float) -> None:
        while self.pending:
            self.read_line(max_read_time)
            self.pending -= 1

    def send_line(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.raw_lines.append(text)
        request = json.loads(text)
        self.requests.append(request)
        if self.responder is not None:
            response = self.responder(request)
            if response is not None:
                self.queue(response)

    def wait_readable(self, timeout: float) -> bool:
        if self.wait_hook is not None:
            self.wait_hook(self)
        return bool(self.incoming)

    def read_line(self, max_read_time: float) -> str:
        item = self.incoming.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class FakeWatchman:
    """Scripted watch service for a single root.

    Answers the handshake, clock, since and full queries, and pushes
    notifications to subscribed channels. Sync markers planted under
    ``<root>/.hg`` are reported like any other change.
    """

    def __init__(
        self,
        root: Path,
        watch_root: str | None = None,
        relative_path: str = "",
        clock: int = 1,
    ) -> None:
        self.root = Path(root)
        self.watch_root = watch_root if watch_root is not None else str(root)
        self.relative_path = relative_path
        self.clock = clock
        self.files: list[str] = []
        self.changed: list[str] = []
        self.report_markers = True
        self.down = False
        self.error: str | None = None
        self.warning: str | None = None
        self.subscriptions: list[dict[str, Any]] = []
        self.locate_calls = 0
        self.channels: list[FakeChannel] = []

    @property
    def channel(self) -> FakeChannel:
        return self.channels[-1]

    def locate(self, timeout: float) -> str:
        self.locate_calls += 1
        if self.down:
            raise OSError("watchman is not running")
        return "/fake/watchman.sock"

    def connect(self, address: str) -> FakeChannel:
        if self.down:
            raise ConnectionRefusedError(address)
        channel = FakeChannel(self.respond, wait_hook=self._push_pending)
        self.channels.append(channel)
        return channel

    def current_clock(self) -> str:
        return f"c:{self.clock}"

    def next_clock(self) -> str:
        self.clock += 1
        return self.current_clock()

    def _marker_names(self) -> list[str]:
        hg = self.root / ".hg"
        if not self.report_markers or not hg.is_dir():
            return []
        return [f".hg/{p.name}" for p in sorted(hg.glob(".*.tmp_sync"))]

    def take_changes(self) -> list[str]:
        names = self.changed + self._marker_names()
        self.changed = []
        return names

    def _decorate(self, response: dict[str, Any]) -> dict[str, Any]:
        if self.warning is not None:
            response["warning"] = self.warning
        return response

    def respond(self, request: list[Any]) -> dict[str, Any]:
        command = request[0]
        if command == "version":
            return {"version": "2017.01.01"}
        if command == "watch-project":
            response: dict[str, Any] = {"watch": self.watch_root}
            if self.relative_path:
                response["relative_path"] = self.relative_path
            return response
        if command == "clock":
            return {"clock": self.current_clock()}
        if command == "subscribe":
            self.subscriptions.append(request[3])
            return {"subscribe": request[2], "clock": self.current_clock()}
        if command == "query":
            if self.error is not None:
                return {"error": self.error}
            names = self.take_changes() if "since" in request[2] else list(self.files)
            return self._decorate({"clock": self.next_clock(), "files": names})
        return {"error": f"unknown command {command}"}

    def _push_pending(self, channel: FakeChannel) -> None:
        if not self.subscriptions or channel.incoming:
            return
        names = self.take_changes()
        if names:
            channel.queue(
                {
                    "subscription": "hh_type_check_watcher",
                    "root": self.watch_root,
                    "clock": self.next_clock(),
                    "files": names,
                }
            )


def make_config(
    tmp_path: Path,
    service: FakeWatchman | None = None,
    clock: FakeClock | None = None,
    telemetry: TelemetrySink | None = None,
) -> ClientConfig:
    """Build a ClientConfig wired to fakes, writing crash markers under tmp_path."""
    clock = clock or FakeClock()
    config = ClientConfig(
        tmp_dir=tmp_path / "tmp",
        clock=clock,
        sleep=clock.sleep,
        telemetry=telemetry or RecordingTelemetry(),
    )
    if service is not None:
        config.locate_endpoint = service.locate
        config.connect = service.connect
    return config
