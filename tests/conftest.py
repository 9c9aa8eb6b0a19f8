from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx
import pytest

from quota_watcher.core.types import ConnectionEndpoint
from quota_watcher.discovery.shell import CommandError

TOKEN = "abc123de-4f5a-4b6c-8d7e-9f0a1b2c3d4e"

LINUX_CMDLINE = (
    "/usr/share/antigravity/resources/app/extensions/antigravity/bin/language_server_linux "
    f"--enable_lsp --extension_server_port 5050 --csrf_token {TOKEN} "
    "--app_data_dir antigravity"
)

WINDOWS_CMDLINE = (
    "C:\\Users\\dev\\AppData\\Local\\Programs\\Antigravity\\resources\\app\\extensions"
    "\\antigravity\\bin\\language_server_windows_x64.exe --enable_lsp "
    f"--extension_server_port 5050 --csrf_token {TOKEN} --app_data_dir antigravity"
)


def ps_line(pid: int, ppid: int, cmdline: str) -> str:
    return f"{pid:>6} {ppid:>6} {cmdline}"


def lsof_output(ports: Sequence[int], pid: int = 100) -> str:
    return "\n".join(
        f"language_ {pid} dev   {10 + i}u  IPv4 0x1a2b3c      0t0  TCP 127.0.0.1:{port} (LISTEN)"
        for i, port in enumerate(ports)
    )


def wmic_output(blocks: Sequence[Tuple[int, str]]) -> str:
    parts = [f"\r\r\nCommandLine={cmd}\r\r\nProcessId={pid}\r\r\n" for pid, cmd in blocks]
    return "\r\r\n".join(parts) + "\r\r\n"


def windows_netstat_output(ports: Sequence[int], pid: int = 100) -> str:
    return "\n".join(
        f"  TCP    127.0.0.1:{port}         0.0.0.0:0              LISTENING       {pid}"
        for port in ports
    )


def make_user_status(
    models: Optional[List[Dict[str, Any]]] = None,
    tier: Optional[str] = "Pro",
    **extra: Any,
) -> Dict[str, Any]:
    if models is None:
        models = [
            {
                "label": "Claude Sonnet 4.5",
                "modelOrAlias": {"model": "MODEL_CLAUDE_4_5_SONNET"},
                "quotaInfo": {"remainingFraction": 0.75, "resetTime": "2099-01-01T00:00:00Z"},
            }
        ]
    user_status: Dict[str, Any] = {
        "name": "dev",
        "email": "dev@example.com",
        "cascadeModelConfigData": {"clientModelConfigs": models},
    }
    if tier:
        user_status["userTier"] = {"id": "pro", "name": tier}
    response = {"userStatus": user_status}
    response.update(extra)
    return response


Outcome = Union[str, BaseException]


class FakeRunner:
    """Stands in for run_command. Rules are (substring, outcome), first match wins."""

    def __init__(self, rules: List[Tuple[str, Union[Outcome, List[Outcome]]]]):
        self.rules = rules
        self.calls: List[str] = []

    async def __call__(self, command: str, timeout: float) -> str:
        self.calls.append(command)
        for needle, outcome in self.rules:
            if needle in command:
                if isinstance(outcome, list):
                    outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        raise CommandError(command, f"Command failed (1): {command}", returncode=1)

    def count(self, needle: str) -> int:
        return sum(1 for call in self.calls if needle in call)


class RecordingHandler:
    """httpx.MockTransport handler that records requests and delegates to a function."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def ports(self) -> List[int]:
        return [request.url.port for request in self.requests]

    def body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def mock_transport(respond: Callable[[httpx.Request], httpx.Response]):
    handler = RecordingHandler(respond)
    return handler, httpx.MockTransport(handler)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def endpoint() -> ConnectionEndpoint:
    return ConnectionEndpoint(secure_port=7070, fallback_port=5050, token=TOKEN)
