"""Configuration utilities for the watchlink CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from watchlink.core.config import ClientConfig
from watchlink.core.telemetry import LoggingTelemetry


def get_config_dir() -> Path:
    """Get the configuration directory for watchlink.

    Returns:
        Path to ~/.watchlink.
    """
    return Path.home() / ".watchlink"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a config file.

    Args:
        path: Explicit file to read (default: get_config_file()).
    """
    config_file = path or get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def build_client_config(data: dict[str, Any]) -> ClientConfig:
    """Build the client config for CLI commands.

    Telemetry events are forwarded to the ``watchlink.telemetry`` logger.
    """
    config = ClientConfig.from_dict(data)
    config.telemetry = LoggingTelemetry(logging.getLogger("watchlink.telemetry"))
    return config
