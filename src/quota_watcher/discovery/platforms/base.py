# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Capability interface shared by the OS-specific discovery strategies.

A strategy knows how to build the shell commands that list candidate
processes and their listening ports, and how to parse what those
commands print. It never runs anything itself; ProcessLocator does.
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

from ...core.constants import APP_DATA_DIR_FLAG, APP_IDENTITY, PORT_FLAG, TOKEN_FLAG
from ...core.types import PlatformErrorMessages, ProcessRecord

_IDENTITY_FLAG_RE = re.compile(
    rf"{APP_DATA_DIR_FLAG}\s+{APP_IDENTITY}\b", re.IGNORECASE
)
_PORT_RE = re.compile(rf"{PORT_FLAG}[=\s]+(\d+)")
_TOKEN_RE = re.compile(rf"{TOKEN_FLAG}[=\s]+([a-f0-9\-]+)", re.IGNORECASE)


def is_target_process(command_line: str) -> bool:
    """
    Check whether a command line belongs to the Antigravity language server.

    Matches the app data dir marker flag or an install path fragment,
    case-insensitively.
    """
    lowered = command_line.lower()
    return (
        bool(_IDENTITY_FLAG_RE.search(command_line))
        or f"/{APP_IDENTITY}/" in lowered
        or f"\\{APP_IDENTITY}\\" in lowered
    )


def extract_flags(command_line: str) -> Optional[Tuple[int, str]]:
    """
    Pull the declared port and CSRF token out of a command line.

    Returns:
        (declared_port, token), with port 0 if the flag is absent,
        or None when no token is present.
    """
    token_match = _TOKEN_RE.search(command_line)
    if not token_match:
        return None
    port_match = _PORT_RE.search(command_line)
    declared_port = int(port_match.group(1)) if port_match else 0
    return declared_port, token_match.group(1)


def sorted_unique(ports: Iterable[int]) -> List[int]:
    return sorted(set(ports))


class PlatformStrategy(ABC):
    """
    OS-specific process and port discovery.

    Subclasses:
        WindowsStrategy, MacOSStrategy, LinuxStrategy
    """

    #: Display name, e.g. "Windows"
    name: str = ""

    @abstractmethod
    def list_processes_command(self, process_name: str) -> str:
        """Shell command listing processes named process_name with full arguments."""

    @abstractmethod
    def parse_process_record(self, raw_output: str) -> Optional[ProcessRecord]:
        """Pick the target process out of the listing output, or None."""

    @abstractmethod
    def ensure_port_tool_available(self) -> None:
        """
        Make sure a port listing utility exists.

        Raises:
            ToolUnavailableError: No supported utility is installed
        """

    @abstractmethod
    def listening_ports_command(self, pid: int) -> str:
        """Shell command listing the TCP ports pid listens on."""

    @abstractmethod
    def parse_listening_ports(self, raw_output: str) -> List[int]:
        """Extract loopback listening ports, ascending and de-duplicated."""

    @abstractmethod
    def error_messages(self) -> PlatformErrorMessages:
        """User-facing error texts for this platform."""

    # =========================================================================
    # STRUCTURAL FALLBACK
    # =========================================================================

    def can_apply_fallback(self) -> bool:
        """Whether a different listing tool can still be swapped in."""
        return False

    def apply_fallback(self) -> None:
        """Swap to the alternative listing tool. No-op by default."""
