# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
DiscoveryService: one call from "nothing known" to a usable endpoint.
"""

import logging
from typing import Optional

from ..config import WatcherConfig
from ..core.types import ConnectionEndpoint
from ..version_info import VersionInfo
from .locator import ProcessLocator
from .platforms import get_platform_strategy, get_process_name
from .prober import PortProber

lib_logger = logging.getLogger("quota_watcher")


class DiscoveryService:
    """
    Combines ProcessLocator and PortProber.

    Keeps no memory of earlier endpoints, so it is safe to call again
    whenever the connection is lost. Construct one per session and
    pass it to whoever needs it.
    """

    def __init__(
        self,
        locator: ProcessLocator,
        prober: PortProber,
        max_attempts: int = 3,
        attempt_delay: float = 2.0,
    ):
        self.locator = locator
        self.prober = prober
        self.max_attempts = max_attempts
        self.attempt_delay = attempt_delay

    @classmethod
    def from_config(
        cls, config: WatcherConfig, platform: Optional[str] = None
    ) -> "DiscoveryService":
        """Wire up the strategy for the running OS."""
        strategy = get_platform_strategy(platform, force_powershell=config.force_powershell)
        locator = ProcessLocator(strategy, get_process_name(platform))
        prober = PortProber(
            version_info=VersionInfo.detect(
                ide_version=config.ide_version,
                extension_version=config.extension_version,
                platform=platform,
            ),
            timeout=config.probe_timeout,
        )
        return cls(
            locator,
            prober,
            max_attempts=config.max_attempts,
            attempt_delay=config.attempt_delay,
        )

    async def discover(self) -> Optional[ConnectionEndpoint]:
        """
        Locate the language server and confirm a working port.

        Returns:
            ConnectionEndpoint, or None if the process or a working port
            could not be found

        Raises:
            ToolUnavailableError: No port listing utility is installed
        """
        candidate = await self.locator.detect(
            max_attempts=self.max_attempts, attempt_delay=self.attempt_delay
        )
        if candidate is None:
            lib_logger.error("Failed to get port and CSRF token from process")
            return None

        working_port = await self.prober.probe(candidate.ports, candidate.record.token)
        if working_port is None:
            lib_logger.error(
                f"None of the listening ports {candidate.ports} answered the probe"
            )
            return None

        endpoint = ConnectionEndpoint(
            secure_port=working_port,
            fallback_port=candidate.record.declared_port,
            token=candidate.record.token,
        )
        lib_logger.info(
            f"Discovered language server: port={endpoint.secure_port} "
            f"fallback_port={endpoint.fallback_port}"
        )
        return endpoint
