"""Core module - Shared configuration, error types and telemetry."""

from watchlink.core.config import ClientConfig, InitSettings
from watchlink.core.telemetry import LoggingTelemetry, TelemetrySink
from watchlink.core.types import (
    ConnectionLost,
    ErrorKind,
    ExitStatus,
    FatalServiceError,
    InitError,
    PayloadTooLong,
    WatchmanError,
    WatchmanProtocolError,
    WatchmanTimeout,
)

__all__ = [
    # Config
    "ClientConfig",
    "InitSettings",
    # Telemetry
    "LoggingTelemetry",
    "TelemetrySink",
    # Errors
    "ConnectionLost",
    "ErrorKind",
    "ExitStatus",
    "FatalServiceError",
    "InitError",
    "PayloadTooLong",
    "WatchmanError",
    "WatchmanProtocolError",
    "WatchmanTimeout",
]
