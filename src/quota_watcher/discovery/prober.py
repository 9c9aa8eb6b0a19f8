# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Liveness probing of candidate ports.

The language server usually listens on several loopback ports; only
one of them answers the Connect RPC API. Rather than guess, each
candidate is tried in ascending order with a cheap request.
"""

import json
import logging
from typing import Iterable, Optional

import httpx

from ..core.constants import (
    CONNECT_PROTOCOL_VERSION,
    CSRF_HEADER,
    LOOPBACK_HOST,
    PROBE_PATH,
    PROBE_TIMEOUT,
)
from ..version_info import VersionInfo

lib_logger = logging.getLogger("quota_watcher")


def build_headers(token: str) -> dict:
    return {
        "Content-Type": "application/json",
        "Connect-Protocol-Version": CONNECT_PROTOCOL_VERSION,
        CSRF_HEADER: token,
    }


class PortProber:
    def __init__(
        self,
        version_info: Optional[VersionInfo] = None,
        timeout: float = PROBE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._version_info = version_info or VersionInfo.detect()
        self._timeout = timeout
        self._transport = transport

    async def probe(self, candidate_ports: Iterable[int], token: str) -> Optional[int]:
        """
        Return the first port that answers the probe with HTTP 200.

        Ports are tried one at a time, never concurrently.
        """
        body = json.dumps(self._version_info.probe_body())
        headers = build_headers(token)

        async with httpx.AsyncClient(
            verify=False, timeout=self._timeout, transport=self._transport
        ) as client:
            for port in candidate_ports:
                if await self._probe_port(client, port, body, headers):
                    lib_logger.debug(f"Port {port} answered the liveness probe")
                    return port
        return None

    async def _probe_port(
        self, client: httpx.AsyncClient, port: int, body: str, headers: dict
    ) -> bool:
        url = f"https://{LOOPBACK_HOST}:{port}{PROBE_PATH}"
        try:
            response = await client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            lib_logger.debug(f"Probe of port {port} failed: {type(e).__name__}: {e}")
            return False
        if response.status_code != 200:
            lib_logger.debug(f"Probe of port {port} returned HTTP {response.status_code}")
            return False
        return True
