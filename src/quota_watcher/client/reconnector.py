# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Re-discovery after transport failures.

When the language server restarts its ports and token change. The
Reconnector re-runs discovery and rebinds the existing PollingClient
in place, so its schedule keeps running.
"""

import logging
from typing import Callable

from ..core.errors import QuotaWatcherError, is_transport_error
from ..discovery.service import DiscoveryService
from .polling import PollingClient

lib_logger = logging.getLogger("quota_watcher")


class Reconnector:
    def __init__(self, discovery: DiscoveryService, client: PollingClient):
        self._discovery = discovery
        self._client = client
        self._reconnecting = False

    @property
    def is_reconnecting(self) -> bool:
        return self._reconnecting

    def attach(self) -> Callable[[], None]:
        """Subscribe to the client's errors. Returns the unsubscribe function."""
        return self._client.on_error(self.handle_error)

    async def handle_error(self, error: BaseException) -> bool:
        """Reconnect if error is transport-class. Returns True on a successful rebind."""
        if not is_transport_error(error):
            return False
        return await self.try_reconnect()

    async def try_reconnect(self) -> bool:
        """
        Discover again and rebind the client.

        Only one reconnection runs at a time; concurrent calls return
        False immediately. On failure the old endpoint stays in place
        and the next scheduled tick will fail into here again.
        """
        if self._reconnecting:
            lib_logger.debug("Reconnect already in progress")
            return False

        self._reconnecting = True
        try:
            lib_logger.info("Connection lost, re-discovering language server")
            try:
                endpoint = await self._discovery.discover()
            except QuotaWatcherError as e:
                lib_logger.warning(f"Re-discovery failed: {e}")
                return False

            if endpoint is None:
                lib_logger.warning("Re-discovery found no language server, keeping old endpoint")
                return False

            self._client.set_endpoint(endpoint)
            await self._client.quick_refresh()
            return True
        finally:
            self._reconnecting = False
