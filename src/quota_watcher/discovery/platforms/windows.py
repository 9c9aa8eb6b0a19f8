# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Process and port discovery for Windows.

Two process listing tools are supported:
- PowerShell Get-CimInstance, emitting JSON (preferred)
- wmic, emitting key=value blocks (legacy, missing on newer Windows builds)

When the active tool turns out to be missing, ProcessLocator swaps to the
other one once via apply_fallback() without spending a retry attempt.
"""

import json
import logging
import os
import re
from typing import Any, Callable, List, Optional, Tuple

from ...core.constants import PROCESS_NAMES
from ...core.types import PlatformErrorMessages, ProcessRecord
from ...localization import t
from .base import PlatformStrategy, extract_flags, is_target_process, sorted_unique

lib_logger = logging.getLogger("quota_watcher")

SYSTEM_ROOT = os.environ.get("SystemRoot", "C:\\Windows")

WMIC_PATH = f'"{SYSTEM_ROOT}\\System32\\wbem\\wmic.exe"'
NETSTAT_PATH = f'"{SYSTEM_ROOT}\\System32\\netstat.exe"'
FINDSTR_PATH = f'"{SYSTEM_ROOT}\\System32\\findstr.exe"'

# Checked in order; the bare name on PATH is the last resort
POWERSHELL_CANDIDATES = (
    f"{SYSTEM_ROOT}\\System32\\WindowsPowerShell\\v1.0\\powershell.exe",
    "C:\\Program Files\\PowerShell\\7\\pwsh.exe",
    f"{SYSTEM_ROOT}\\System32\\pwsh.exe",
    "C:\\Program Files\\PowerShell\\6\\pwsh.exe",
    "C:\\Program Files (x86)\\PowerShell\\7\\pwsh.exe",
    "C:\\Program Files (x86)\\PowerShell\\6\\pwsh.exe",
)
POWERSHELL_PATH_FALLBACK = "powershell"

_LISTENING_RE = re.compile(
    r"(?:127\.0\.0\.1|0\.0\.0\.0|\[::1?\]):(\d+)\s+\S+\s+LISTENING", re.IGNORECASE
)
_WMIC_PID_RE = re.compile(r"ProcessId=(\d+)")
_WMIC_CMD_RE = re.compile(r"CommandLine=(.+)")
_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")


def find_powershell(exists: Callable[[str], bool] = os.path.exists) -> Tuple[str, bool]:
    """
    Locate a PowerShell executable in a known system location.

    Avoids picking up whatever "powershell" happens to be first on PATH.

    Returns:
        (quoted command, found_in_known_location)
    """
    for candidate in POWERSHELL_CANDIDATES:
        try:
            if exists(candidate):
                return f'"{candidate}"', True
        except OSError:
            continue
    return POWERSHELL_PATH_FALLBACK, False


class WindowsStrategy(PlatformStrategy):
    name = "Windows"

    def __init__(
        self,
        use_powershell: bool = True,
        exists: Callable[[str], bool] = os.path.exists,
    ):
        self._use_powershell = use_powershell
        self._exists = exists
        self._powershell: Optional[str] = None
        self._fallback_applied = False

    @property
    def use_powershell(self) -> bool:
        return self._use_powershell

    def _powershell_command(self) -> str:
        if self._powershell is None:
            self._powershell, found = find_powershell(self._exists)
            if not found:
                lib_logger.debug("PowerShell not found in known locations, using PATH")
        return self._powershell

    # =========================================================================
    # PROCESSES
    # =========================================================================

    def list_processes_command(self, process_name: str) -> str:
        if self._use_powershell:
            return (
                f"{self._powershell_command()} -NoProfile -Command "
                f"\"Get-CimInstance Win32_Process -Filter \\\"name='{process_name}'\\\" "
                f'| Select-Object ProcessId,CommandLine | ConvertTo-Json"'
            )
        return (
            f"{WMIC_PATH} process where \"name='{process_name}'\" "
            f"get ProcessId,CommandLine /format:list"
        )

    def parse_process_record(self, raw_output: str) -> Optional[ProcessRecord]:
        if not raw_output or not raw_output.strip():
            return None

        text = raw_output.replace("\r", "").strip()
        if text.startswith("{") or text.startswith("["):
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                lib_logger.debug("Process listing looked like JSON but did not parse")
            else:
                return self._parse_json_records(data)

        return self._parse_list_blocks(text)

    def _parse_json_records(self, data: Any) -> Optional[ProcessRecord]:
        entries = data if isinstance(data, list) else [data]
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            command_line = entry.get("CommandLine") or ""
            pid = entry.get("ProcessId")
            if not command_line or not pid or not is_target_process(command_line):
                continue
            flags = extract_flags(command_line)
            if flags is None:
                continue
            try:
                pid = int(pid)
            except (TypeError, ValueError):
                continue
            return ProcessRecord(pid=pid, declared_port=flags[0], token=flags[1])
        return None

    def _parse_list_blocks(self, text: str) -> Optional[ProcessRecord]:
        for block in _BLOCK_SPLIT_RE.split(text):
            pid_match = _WMIC_PID_RE.search(block)
            cmd_match = _WMIC_CMD_RE.search(block)
            if not pid_match or not cmd_match:
                continue
            command_line = cmd_match.group(1).strip()
            if not is_target_process(command_line):
                continue
            flags = extract_flags(command_line)
            if flags is None:
                continue
            return ProcessRecord(
                pid=int(pid_match.group(1)), declared_port=flags[0], token=flags[1]
            )
        return None

    # =========================================================================
    # PORTS
    # =========================================================================

    def ensure_port_tool_available(self) -> None:
        # netstat ships with every supported Windows version
        return None

    def listening_ports_command(self, pid: int) -> str:
        return (
            f'{NETSTAT_PATH} -ano | {FINDSTR_PATH} "{pid}" '
            f'| {FINDSTR_PATH} "LISTENING"'
        )

    def parse_listening_ports(self, raw_output: str) -> List[int]:
        if not raw_output:
            return []
        return sorted_unique(int(m) for m in _LISTENING_RE.findall(raw_output))

    def error_messages(self) -> PlatformErrorMessages:
        return PlatformErrorMessages(
            process_not_found=t("discovery.processNotFound"),
            tool_unavailable=t(
                "tool.powershellFailed" if self._use_powershell else "tool.wmicFailed"
            ),
            requirements=[
                t("requirement.running"),
                t("requirement.process", process=PROCESS_NAMES["win32"]),
                t("requirement.permission"),
            ],
        )

    # =========================================================================
    # STRUCTURAL FALLBACK
    # =========================================================================

    def can_apply_fallback(self) -> bool:
        return not self._fallback_applied

    def apply_fallback(self) -> None:
        if self._fallback_applied:
            return
        self._fallback_applied = True
        self._use_powershell = not self._use_powershell
        lib_logger.info(
            f"Switching process listing to {'PowerShell' if self._use_powershell else 'wmic'}"
        )
