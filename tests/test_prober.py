from __future__ import annotations

import httpx
import pytest

from conftest import TOKEN, mock_transport
from quota_watcher.discovery.prober import PortProber
from quota_watcher.version_info import VersionInfo


def _responder(working_port: int):
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.port == working_port:
            return httpx.Response(200, json={})
        if request.url.port % 2:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
        return httpx.Response(404, text="not found")

    return respond


@pytest.mark.asyncio
async def test_probe_tries_ports_in_order_until_success() -> None:
    handler, transport = mock_transport(_responder(7072))
    prober = PortProber(version_info=VersionInfo(ide_version="1.2.3"), transport=transport)

    assert await prober.probe([7070, 7071, 7072, 7073], TOKEN) == 7072
    assert handler.ports == [7070, 7071, 7072]


@pytest.mark.asyncio
async def test_probe_returns_none_when_nothing_answers() -> None:
    handler, transport = mock_transport(_responder(0))
    prober = PortProber(transport=transport)
    assert await prober.probe([7070, 7071], TOKEN) is None
    assert handler.ports == [7070, 7071]


@pytest.mark.asyncio
async def test_probe_treats_timeout_as_failure() -> None:
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.port == 7070:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={})

    handler, transport = mock_transport(respond)
    assert await PortProber(transport=transport).probe([7070, 7071], TOKEN) == 7071


@pytest.mark.asyncio
async def test_probe_request_shape() -> None:
    handler, transport = mock_transport(_responder(7070))
    prober = PortProber(
        version_info=VersionInfo(extension_version="0.3.0", ide_version="1.2.3", os="linux"),
        transport=transport,
    )
    await prober.probe([7070], TOKEN)

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.scheme == "https"
    assert request.url.host == "127.0.0.1"
    assert request.url.path == "/exa.language_server_pb.LanguageServerService/GetUnleashData"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Connect-Protocol-Version"] == "1"
    assert request.headers["X-Codeium-Csrf-Token"] == TOKEN

    properties = handler.body()["context"]["properties"]
    assert properties["ide"] == "antigravity"
    assert properties["ideVersion"] == "1.2.3"
    assert properties["os"] == "linux"
    assert properties["installationId"] == "test-detection"
