"""Telemetry hooks for watch service lifecycle events.

The sink is fire-and-forget: no hook returns a value or affects control flow.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class TelemetrySink:
    """No-op telemetry sink. Subclass and override the hooks you care about."""

    def connection_lost(self) -> None:
        """Called when an alive connection is demoted to dead."""

    def reconnected(self) -> None:
        """Called when a dead instance was reinitialized."""

    def reconnect_failed(self) -> None:
        """Called when a reinitialization attempt failed."""

    def protocol_timeout(self) -> None:
        """Called when no response arrived before the request timeout."""

    def uncaught_failure(self, message: str) -> None:
        """Called right before a fatal exit."""

    def service_warning(self, message: str) -> None:
        """Called for every ``warning`` reported by the service."""

    def service_error(self, message: str) -> None:
        """Called for every ``error`` reported by the service."""


class LoggingTelemetry(TelemetrySink):
    """Telemetry sink that forwards every event to a logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def connection_lost(self) -> None:
        self._log.info("telemetry: watchman connection lost")

    def reconnected(self) -> None:
        self._log.info("telemetry: watchman connection reestablished")

    def reconnect_failed(self) -> None:
        self._log.info("telemetry: watchman reconnection failed")

    def protocol_timeout(self) -> None:
        self._log.info("telemetry: watchman timeout")

    def uncaught_failure(self, message: str) -> None:
        self._log.error("telemetry: watchman uncaught failure: %s", message)

    def service_warning(self, message: str) -> None:
        self._log.info("telemetry: watchman warning: %s", message)

    def service_error(self, message: str) -> None:
        self._log.info("telemetry: watchman error: %s", message)
