"""
Centralized Configuration
=========================
Centralized configuration values and constants for the opentrace engine.

This module provides:
- Timeout and polling configuration for module execution
- Default module directory and wire-level constants
- Tracing configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _default_home() -> Path:
    return Path(os.getenv("OPENTRACE_HOME", str(Path.home() / ".opentrace"))).expanduser()


@dataclass(frozen=True)
class TimeoutConfig:
    """Centralized timeout configuration in seconds."""

    # Module execution; 0 disables the timeout
    MODULE_EXECUTION: float = float(os.getenv("OPENTRACE_MODULE_TIMEOUT", "0"))

    # How often a running module is checked for cancellation/timeout
    POLL_INTERVAL: float = float(os.getenv("OPENTRACE_POLL_INTERVAL", "0.05"))

    # Grace period between terminate() and kill()
    TERMINATE_GRACE: float = float(os.getenv("OPENTRACE_TERMINATE_GRACE", "3"))

    # How long pipes may stay open after a module exits (held by its children)
    PIPE_DRAIN: float = float(os.getenv("OPENTRACE_PIPE_DRAIN", "2"))


@dataclass(frozen=True)
class PathConfig:
    """Filesystem locations."""

    HOME: Path = _default_home()
    BIN_DIR: Path = Path(os.getenv("OPENTRACE_BIN_DIR", str(_default_home() / "bin"))).expanduser()


@dataclass(frozen=True)
class ProtocolConfig:
    """Pipeline and wire protocol constants."""

    REFERENCE_SIGIL: str = "$"
    WINDOWS_EXE_SUFFIX: str = ".exe"

    # Raw module output is truncated to this many characters in error messages
    MAX_RAW_OUTPUT_IN_ERROR: int = 2000


@dataclass(frozen=True)
class TracingConfig:
    """Tracing configuration."""

    SERVICE_NAME: str = "opentrace"
    OTLP_ENDPOINT: str = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    ENABLED: bool = os.getenv("OPENTRACE_ENABLE_TRACING", "false").lower() == "true"


# Global singleton instances
TIMEOUTS = TimeoutConfig()
PATHS = PathConfig()
PROTOCOL = ProtocolConfig()
TRACING = TracingConfig()


def get_timeout(operation: str) -> Optional[float]:
    """Get timeout for a specific operation type.

    Args:
        operation: One of 'module', 'poll', 'terminate', 'drain'

    Returns:
        Timeout in seconds, or None when the timeout is disabled
    """
    mapping = {
        "module": TIMEOUTS.MODULE_EXECUTION,
        "poll": TIMEOUTS.POLL_INTERVAL,
        "terminate": TIMEOUTS.TERMINATE_GRACE,
        "drain": TIMEOUTS.PIPE_DRAIN,
    }
    value = mapping.get(operation, TIMEOUTS.MODULE_EXECUTION)
    if value <= 0:
        return None
    return value
