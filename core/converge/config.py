"""Shared converge configuration utilities.

Centralises reading of ~/.converge/configuration.json so that the engine,
the demos and host applications share one implementation.

Example file::

    {
        "logging": {"level": "DEBUG", "format": "human", "trace_events": true}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from converge.observability.logging import configure_logging

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

CONVERGE_CONFIG_FILE = Path.home() / ".converge" / "configuration.json"


def get_converge_config() -> dict[str, Any]:
    """Load converge configuration from ~/.converge/configuration.json."""
    if not CONVERGE_CONFIG_FILE.exists():
        return {}
    try:
        with open(CONVERGE_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_log_level() -> str:
    """Return the log level; CONVERGE_LOG_LEVEL overrides the config file."""
    env_level = os.environ.get("CONVERGE_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return str(get_converge_config().get("logging", {}).get("level", "INFO")).upper()


def get_log_format() -> str:
    """Return the log format ("json", "human" or "auto")."""
    return get_converge_config().get("logging", {}).get("format", "auto")


def get_log_trace_events() -> bool:
    """Whether trace events are forwarded to the stdlib logger."""
    return bool(get_converge_config().get("logging", {}).get("trace_events", True))


# ---------------------------------------------------------------------------
# EngineConfig
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine configuration loaded from ~/.converge/configuration.json."""

    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
    log_trace_events: bool = field(default_factory=get_log_trace_events)

    def configure_logging(self) -> None:
        """Install the configured formatter and level on the root logger."""
        configure_logging(level=self.log_level, format=self.log_format)
