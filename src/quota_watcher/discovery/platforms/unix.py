# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Process and port discovery for macOS and Linux.

Processes are listed with ps; listening ports with whichever of
lsof, ss or netstat is installed (probed once, in that order, then
pinned for the rest of the session).
"""

import logging
import os
import re
import shutil
from typing import Callable, List, Optional, Sequence

from ...core.constants import PROCESS_NAMES
from ...core.errors import ToolUnavailableError
from ...core.types import PlatformErrorMessages, ProcessRecord
from ...localization import t
from .base import PlatformStrategy, extract_flags, is_target_process, sorted_unique

lib_logger = logging.getLogger("quota_watcher")

# Port listing layouts, one per tool
_LSOF_RE = re.compile(r"127\.0\.0\.1:(\d+).*\(LISTEN\)")
_SS_RE = re.compile(r"LISTEN\s+\d+\s+\d+\s+(?:127\.0\.0\.1|\*|\[::1\]):(\d+)")
_NETSTAT_RE = re.compile(r"127\.0\.0\.1:(\d+).*LISTEN")
_LOCALHOST_RE = re.compile(r"localhost:(\d+).*LISTEN")
# BSD netstat joins address and port with a dot
_BSD_NETSTAT_RE = re.compile(r"127\.0\.0\.1\.(\d+)\s+\S+\s+LISTEN")

WRAPPER_PROCESS = "graftcp"


class UnixStrategy(PlatformStrategy):
    """Shared ps/lsof/ss/netstat logic for Unix-like systems."""

    port_tools: Sequence[str] = ("lsof", "ss", "netstat")
    process_name: str = ""
    tool_required_key: str = "tool.portCommandRequired"

    def __init__(
        self,
        which: Callable[[str], Optional[str]] = shutil.which,
        own_pid: Optional[int] = None,
    ):
        self._which = which
        self._own_pid = own_pid if own_pid is not None else os.getpid()
        self._port_tool: Optional[str] = None

    @property
    def port_tool(self) -> Optional[str]:
        return self._port_tool

    # =========================================================================
    # PROCESSES
    # =========================================================================

    def list_processes_command(self, process_name: str) -> str:
        return (
            f'ps -ww -eo pid,ppid,args | grep "{process_name}" '
            f"| grep -v grep | grep -v {WRAPPER_PROCESS}"
        )

    def parse_process_record(self, raw_output: str) -> Optional[ProcessRecord]:
        if not raw_output or not raw_output.strip():
            return None

        candidates: List[ProcessRecord] = []
        for line in raw_output.strip().splitlines():
            parts = line.split()
            if len(parts) < 3:
                continue
            try:
                pid = int(parts[0])
                ppid = int(parts[1])
            except ValueError:
                continue
            if WRAPPER_PROCESS in parts[2]:
                continue

            command_line = " ".join(parts[2:])
            if not is_target_process(command_line):
                continue
            flags = extract_flags(command_line)
            if flags is None:
                continue

            declared_port, token = flags
            candidates.append(
                ProcessRecord(pid=pid, declared_port=declared_port, token=token, ppid=ppid)
            )

        if not candidates:
            return None

        # A direct child of this process wins over the first match
        for candidate in candidates:
            if candidate.ppid == self._own_pid:
                return candidate
        return candidates[0]

    # =========================================================================
    # PORTS
    # =========================================================================

    def ensure_port_tool_available(self) -> None:
        if self._port_tool:
            return

        for tool in self.port_tools:
            if self._which(tool):
                self._port_tool = tool
                lib_logger.debug(f"Using {tool} for port detection")
                return

        raise ToolUnavailableError(t(self.tool_required_key))

    def listening_ports_command(self, pid: int) -> str:
        if self._port_tool == "lsof":
            return f"lsof -Pan -p {pid} -i"
        if self._port_tool == "ss":
            return f'ss -tlnp 2>/dev/null | grep "pid={pid},"'
        if self._port_tool == "netstat":
            return f"netstat -tulpn 2>/dev/null | grep {pid}"
        return f'lsof -Pan -p {pid} -i 2>/dev/null || ss -tlnp 2>/dev/null | grep "pid={pid},"'

    def _port_patterns(self) -> List["re.Pattern[str]"]:
        return [_LSOF_RE, _SS_RE, _NETSTAT_RE, _LOCALHOST_RE]

    def parse_listening_ports(self, raw_output: str) -> List[int]:
        if not raw_output or not raw_output.strip():
            return []

        patterns = self._port_patterns()
        ports = []
        for line in raw_output.strip().splitlines():
            for pattern in patterns:
                match = pattern.search(line)
                if match:
                    ports.append(int(match.group(1)))
                    break
        return sorted_unique(ports)

    def error_messages(self) -> PlatformErrorMessages:
        return PlatformErrorMessages(
            process_not_found=t("discovery.processNotFound"),
            tool_unavailable=t("tool.unixUnavailable"),
            requirements=[
                t("requirement.running"),
                t("requirement.process", process=self.process_name),
                t("requirement.unixPermission"),
            ],
        )


class LinuxStrategy(UnixStrategy):
    name = "Linux"
    process_name = PROCESS_NAMES["linux"]


class MacOSStrategy(UnixStrategy):
    """macOS has no ss, and its netstat needs -v to show owning pids."""

    name = "macOS"
    process_name = PROCESS_NAMES["darwin"]
    port_tools = ("lsof", "netstat")
    tool_required_key = "tool.portCommandRequiredDarwin"

    def listening_ports_command(self, pid: int) -> str:
        if self._port_tool == "netstat":
            return f"netstat -anv -p tcp 2>/dev/null | grep LISTEN | grep -w {pid}"
        return super().listening_ports_command(pid)

    def _port_patterns(self) -> List["re.Pattern[str]"]:
        return super()._port_patterns() + [_BSD_NETSTAT_RE]
