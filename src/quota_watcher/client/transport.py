# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
JSON-over-POST requests to the local language server.

Requests go over HTTPS to the probed port first. Some server builds
speak plain HTTP on the declared port instead; when the TLS handshake
fails with a wrong-version signature, the same request is retried once
over HTTP against the fallback port. The choice is never cached since
it can change between server restarts.
"""

import json
import logging
from typing import Any, Dict

import httpx

from ..core.constants import LOOPBACK_HOST, REQUEST_TIMEOUT
from ..core.errors import (
    ApplicationError,
    ProtocolMismatchError,
    ResponseParseError,
    TransportError,
    is_protocol_mismatch,
)
from ..core.types import ConnectionEndpoint
from ..discovery.prober import build_headers

lib_logger = logging.getLogger("quota_watcher")


async def post_json(
    client: httpx.AsyncClient,
    endpoint: ConnectionEndpoint,
    path: str,
    body: Dict[str, Any],
    timeout: float = REQUEST_TIMEOUT,
) -> Any:
    """
    POST a JSON body and return the decoded JSON response.

    Args:
        client: Shared client, created with verify=False
        endpoint: Ports and token, read once by the caller
        path: RPC path
        body: Request payload
        timeout: Per-request timeout in seconds

    Raises:
        TransportError: Connection refused, reset or timed out
        ApplicationError: Non-200 HTTP status
        ResponseParseError: Body is not JSON
    """
    if not endpoint.token:
        raise ApplicationError("Missing CSRF token")

    content = json.dumps(body)
    headers = build_headers(endpoint.token)

    try:
        return await _post(client, "https", endpoint.secure_port, path, content, headers, timeout)
    except ProtocolMismatchError:
        if not endpoint.fallback_port:
            raise
        lib_logger.debug(
            f"TLS handshake on port {endpoint.secure_port} failed, "
            f"retrying over HTTP on port {endpoint.fallback_port}"
        )
        return await _post(client, "http", endpoint.fallback_port, path, content, headers, timeout)


async def _post(
    client: httpx.AsyncClient,
    scheme: str,
    port: int,
    path: str,
    content: str,
    headers: Dict[str, str],
    timeout: float,
) -> Any:
    url = f"{scheme}://{LOOPBACK_HOST}:{port}{path}"
    try:
        response = await client.post(url, content=content, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        raise TransportError(f"Timeout: {e}") from e
    except httpx.HTTPError as e:
        if is_protocol_mismatch(e):
            raise ProtocolMismatchError(str(e)) from e
        raise TransportError(f"{type(e).__name__}: {e}") from e

    if response.status_code != 200:
        raise ApplicationError(
            f"HTTP {response.status_code}: {_error_detail(response)}",
            code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise ResponseParseError(f"Parse error: {e}") from e


def _error_detail(response: httpx.Response) -> str:
    text = response.text
    try:
        data = response.json()
    except ValueError:
        return text or "(empty response)"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or text)
    return text
