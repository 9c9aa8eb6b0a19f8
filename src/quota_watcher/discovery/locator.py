# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Locates the language server process and the ports it listens on.
"""

import asyncio
import logging
from typing import List, Optional

from ..core.constants import (
    DEFAULT_ATTEMPT_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    PORT_LIST_TIMEOUT,
    PROCESS_LIST_TIMEOUT,
)
from ..core.errors import DiscoveryNotFoundError, is_tool_missing, mask_token
from ..core.types import ConnectionCandidate, ProcessRecord
from ..localization import t
from .platforms import PlatformStrategy
from .shell import CommandError, CommandRunner, run_command

lib_logger = logging.getLogger("quota_watcher")


class ProcessLocator:
    """
    Drives a PlatformStrategy to find the target process.

    Owns the retry loop for "not found" conditions, including the
    one-time structural fallback to another listing tool.
    """

    def __init__(
        self,
        strategy: PlatformStrategy,
        process_name: str,
        runner: CommandRunner = run_command,
        process_list_timeout: float = PROCESS_LIST_TIMEOUT,
        port_list_timeout: float = PORT_LIST_TIMEOUT,
    ):
        self.strategy = strategy
        self.process_name = process_name
        self._run = runner
        self._process_list_timeout = process_list_timeout
        self._port_list_timeout = port_list_timeout

    async def detect(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_delay: float = DEFAULT_ATTEMPT_DELAY,
    ) -> Optional[ConnectionCandidate]:
        """
        Find the process and its candidate ports.

        Args:
            max_attempts: Attempt slots before giving up
            attempt_delay: Seconds to wait between attempts

        Returns:
            ConnectionCandidate, or None once every attempt failed

        Raises:
            ToolUnavailableError: No port listing utility is installed
        """
        attempt = 1
        while attempt <= max_attempts:
            try:
                record, ports = await self._attempt()
                lib_logger.debug(
                    f"Found {self.process_name} pid={record.pid} "
                    f"declared_port={record.declared_port} "
                    f"token={mask_token(record.token)} ports={ports}"
                )
                return ConnectionCandidate(record=record, ports=ports, attempts=attempt)
            except (DiscoveryNotFoundError, CommandError) as e:
                message = str(e)
                if is_tool_missing(message) and self.strategy.can_apply_fallback():
                    # Same attempt slot, different tool
                    self.strategy.apply_fallback()
                    continue

                lib_logger.debug(
                    f"Discovery attempt {attempt}/{max_attempts} failed: {message}"
                )

            if attempt < max_attempts:
                await asyncio.sleep(attempt_delay)
            attempt += 1

        lib_logger.warning(
            f"Could not locate {self.process_name} after {max_attempts} attempts"
        )
        return None

    async def _attempt(self):
        command = self.strategy.list_processes_command(self.process_name)
        output = await self._run(command, self._process_list_timeout)

        record = self.strategy.parse_process_record(output)
        if record is None:
            raise DiscoveryNotFoundError(
                self.strategy.error_messages().process_not_found
            )

        ports = await self.list_ports(record)
        if not ports:
            raise DiscoveryNotFoundError(t("discovery.noListeningPorts"))
        return record, ports

    async def list_ports(self, record: ProcessRecord) -> List[int]:
        """
        Enumerate the loopback ports a process listens on.

        A failing port command yields an empty list. A missing port
        utility is not swallowed.
        """
        self.strategy.ensure_port_tool_available()
        command = self.strategy.listening_ports_command(record.pid)
        try:
            output = await self._run(command, self._port_list_timeout)
        except CommandError as e:
            lib_logger.debug(f"Port listing for pid {record.pid} failed: {e}")
            return []
        return self.strategy.parse_listening_ports(output)
