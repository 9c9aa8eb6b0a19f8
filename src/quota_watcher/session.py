# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
QuotaSession wires discovery, polling and reconnection together for
one monitored language server.
"""

import logging
from typing import Any, Callable, Optional

from .client.events import Listeners
from .client.polling import PollingClient
from .client.reconnector import Reconnector
from .client.snapshot import to_quota_data
from .config import WatcherConfig
from .core.errors import ApplicationError, ToolUnavailableError, is_transport_error
from .core.types import ConnectionEndpoint, QuotaData, QuotaSnapshot
from .discovery.service import DiscoveryService
from .version_info import VersionInfo

lib_logger = logging.getLogger("quota_watcher")

# Application errors that mean no account is signed in
_LOGIN_MARKERS = ("quota info", "not logged in")

ClientFactory = Callable[[ConnectionEndpoint], PollingClient]


class QuotaSession:
    """
    Usage:
        session = QuotaSession(DiscoveryService.from_config(config), config)
        if await session.initialize():
            session.on_data_update(render)
            ...
            await session.aclose()
    """

    def __init__(
        self,
        discovery: DiscoveryService,
        config: Optional[WatcherConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._discovery = discovery
        self._config = config or WatcherConfig()
        self._client_factory = client_factory or self._default_client
        self.client: Optional[PollingClient] = None
        self.reconnector: Optional[Reconnector] = None
        self.last_error: Optional[str] = None
        self._initialized = False
        self._cached: Optional[QuotaData] = None
        self._data_listeners = Listeners("data")
        self._error_listeners = Listeners("session error")

    def _default_client(self, endpoint: ConnectionEndpoint) -> PollingClient:
        return PollingClient(
            endpoint,
            version_info=VersionInfo.detect(
                ide_version=self._config.ide_version,
                extension_version=self._config.extension_version,
            ),
            request_timeout=self._config.request_timeout,
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def cached_data(self) -> Optional[QuotaData]:
        return self._cached

    async def initialize(self) -> bool:
        """
        Discover the server and start polling.

        Returns:
            False if discovery failed. last_error holds the user-facing
            reason when a required tool is missing.
        """
        if self._initialized:
            return True

        try:
            endpoint = await self._discovery.discover()
        except ToolUnavailableError as e:
            self.last_error = str(e)
            lib_logger.error(self.last_error)
            return False

        if endpoint is None:
            return False

        self.client = self._client_factory(endpoint)
        self.client.on_snapshot(self._on_snapshot)
        self.client.on_error(self._on_error)
        self.reconnector = Reconnector(self._discovery, self.client)

        await self.client.start_polling(self._config.poll_interval)
        self._initialized = True
        return True

    def on_data_update(self, listener: Callable[[QuotaData], Any]) -> Callable[[], None]:
        """Subscribe to display data. The latest data is replayed immediately."""
        unsubscribe = self._data_listeners.subscribe(listener)
        if self._cached is not None:
            try:
                listener(self._cached)
            except Exception:
                lib_logger.exception("Error in data listener")
        return unsubscribe

    def on_error(self, listener: Callable[[Exception], Any]) -> Callable[[], None]:
        return self._error_listeners.subscribe(listener)

    async def fetch_quota_data(self) -> Optional[QuotaData]:
        if not self._initialized:
            return None
        if self._cached is None and self.client is not None:
            await self.client.quick_refresh()
        return self._cached

    async def stop(self) -> None:
        if self.client is not None:
            self.client.stop_polling()

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
        self._data_listeners.cancel_pending()
        self._error_listeners.cancel_pending()
        self._initialized = False

    def _on_snapshot(self, snapshot: QuotaSnapshot) -> None:
        self._cached = to_quota_data(snapshot)
        self._data_listeners.emit(self._cached)

    async def _on_error(self, error: Exception) -> None:
        if is_transport_error(error) and self.reconnector is not None:
            await self.reconnector.try_reconnect()
            return

        message = str(error).lower()
        if isinstance(error, ApplicationError) and any(m in message for m in _LOGIN_MARKERS):
            self._cached = QuotaData(needs_login=True)
            self._data_listeners.emit(self._cached)
            return

        self._error_listeners.emit(error)
