# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Runtime configuration loaded from environment variables.

Environment variables:
    QUOTA_WATCHER_POLL_INTERVAL: Seconds between quota polls (default: 15)
    QUOTA_WATCHER_MAX_ATTEMPTS: Discovery attempts before giving up (default: 3)
    QUOTA_WATCHER_ATTEMPT_DELAY: Seconds between discovery attempts (default: 2)
    QUOTA_WATCHER_FORCE_POWERSHELL: Use PowerShell instead of wmic on Windows (default: true)
    QUOTA_WATCHER_REQUEST_TIMEOUT: Quota request timeout in seconds (default: 5)
    QUOTA_WATCHER_PROBE_TIMEOUT: Port probe timeout in seconds (default: 2)
    QUOTA_WATCHER_IDE_VERSION: IDE version reported to the language server
    QUOTA_WATCHER_EXTENSION_VERSION: Extension version reported to the language server
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .core.constants import (
    DEFAULT_ATTEMPT_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    PROBE_TIMEOUT,
    REQUEST_TIMEOUT,
)

lib_logger = logging.getLogger("quota_watcher")

ENV_PREFIX = "QUOTA_WATCHER_"


def _env_int(name: str, default: int) -> int:
    """Parse an integer from environment variable with fallback to default."""
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        lib_logger.warning(f"Invalid {name} value, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    """Parse a float from environment variable with fallback to default."""
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        lib_logger.warning(f"Invalid {name} value, using default {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class WatcherConfig:
    """Settings for one monitoring session."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    attempt_delay: float = DEFAULT_ATTEMPT_DELAY
    force_powershell: bool = True
    request_timeout: float = REQUEST_TIMEOUT
    probe_timeout: float = PROBE_TIMEOUT
    ide_version: Optional[str] = None
    extension_version: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "WatcherConfig":
        """
        Build a config from the process environment.

        Args:
            env_file: Optional .env file to load first. Existing
                environment variables take precedence over the file.
        """
        if env_file:
            load_dotenv(env_file, override=False)

        return cls(
            poll_interval=max(
                1.0, _env_float(f"{ENV_PREFIX}POLL_INTERVAL", DEFAULT_POLL_INTERVAL)
            ),
            max_attempts=max(
                1, _env_int(f"{ENV_PREFIX}MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
            ),
            attempt_delay=max(
                0.0, _env_float(f"{ENV_PREFIX}ATTEMPT_DELAY", DEFAULT_ATTEMPT_DELAY)
            ),
            force_powershell=_env_bool(f"{ENV_PREFIX}FORCE_POWERSHELL", True),
            request_timeout=_env_float(f"{ENV_PREFIX}REQUEST_TIMEOUT", REQUEST_TIMEOUT),
            probe_timeout=_env_float(f"{ENV_PREFIX}PROBE_TIMEOUT", PROBE_TIMEOUT),
            ide_version=os.environ.get(f"{ENV_PREFIX}IDE_VERSION") or None,
            extension_version=os.environ.get(f"{ENV_PREFIX}EXTENSION_VERSION") or None,
        )
