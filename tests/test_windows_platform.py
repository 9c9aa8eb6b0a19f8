from __future__ import annotations

import json

import pytest

from conftest import TOKEN, WINDOWS_CMDLINE, windows_netstat_output, wmic_output
from quota_watcher.discovery.platforms import WindowsStrategy, get_platform_strategy
from quota_watcher.discovery.platforms.windows import find_powershell


def _strategy(use_powershell: bool = True) -> WindowsStrategy:
    return WindowsStrategy(use_powershell=use_powershell, exists=lambda path: False)


def test_parse_powershell_json_array() -> None:
    output = json.dumps(
        [
            {"ProcessId": 50, "CommandLine": "C:\\other\\language_server_windows_x64.exe --csrf_token abc"},
            {"ProcessId": 100, "CommandLine": WINDOWS_CMDLINE},
        ]
    )
    record = _strategy().parse_process_record(output)
    assert record is not None
    assert (record.pid, record.declared_port, record.token) == (100, 5050, TOKEN)


def test_parse_powershell_single_object() -> None:
    output = json.dumps({"ProcessId": 100, "CommandLine": WINDOWS_CMDLINE}, indent=4)
    assert _strategy().parse_process_record(output).pid == 100


def test_parse_json_entry_without_command_line_is_skipped() -> None:
    output = json.dumps([{"ProcessId": 7, "CommandLine": None}])
    assert _strategy().parse_process_record(output) is None


def test_parse_wmic_blocks() -> None:
    output = wmic_output([(50, "C:\\tools\\something_else.exe"), (100, WINDOWS_CMDLINE)])
    record = _strategy(use_powershell=False).parse_process_record(output)
    assert record is not None
    assert record.pid == 100
    assert record.token == TOKEN


def test_parser_accepts_either_format_regardless_of_active_tool() -> None:
    json_output = json.dumps({"ProcessId": 100, "CommandLine": WINDOWS_CMDLINE})
    list_output = wmic_output([(100, WINDOWS_CMDLINE)])
    assert _strategy(use_powershell=False).parse_process_record(json_output).pid == 100
    assert _strategy(use_powershell=True).parse_process_record(list_output).pid == 100


def test_parse_requires_token_and_identity() -> None:
    no_token = WINDOWS_CMDLINE.replace(f"--csrf_token {TOKEN}", "")
    foreign = "C:\\Codeium\\language_server_windows_x64.exe --csrf_token " + TOKEN
    assert _strategy().parse_process_record(wmic_output([(100, no_token)])) is None
    assert _strategy().parse_process_record(wmic_output([(100, foreign)])) is None


def test_listening_ports_recognize_loopback_and_any_bindings() -> None:
    output = "\n".join(
        [
            windows_netstat_output([3, 1, 3]),
            "  TCP    0.0.0.0:2              0.0.0.0:0              LISTENING       100",
            "  TCP    [::1]:4                [::]:0                 LISTENING       100",
            "  TCP    127.0.0.1:9000         127.0.0.1:51000        ESTABLISHED     100",
        ]
    )
    assert _strategy().parse_listening_ports(output) == [1, 2, 3, 4]


def test_fallback_switches_tool_exactly_once() -> None:
    strategy = _strategy(use_powershell=True)
    assert "Get-CimInstance" in strategy.list_processes_command("language_server_windows_x64.exe")
    assert strategy.can_apply_fallback()

    strategy.apply_fallback()
    assert strategy.use_powershell is False
    assert "wmic.exe" in strategy.list_processes_command("language_server_windows_x64.exe")
    assert not strategy.can_apply_fallback()

    strategy.apply_fallback()
    assert strategy.use_powershell is False


def test_fallback_from_wmic_promotes_to_powershell() -> None:
    strategy = _strategy(use_powershell=False)
    strategy.apply_fallback()
    assert strategy.use_powershell is True


def test_powershell_resolved_from_known_locations() -> None:
    found = {"C:\\Program Files\\PowerShell\\7\\pwsh.exe"}
    command, in_known_location = find_powershell(lambda path: path in found)
    assert command == '"C:\\Program Files\\PowerShell\\7\\pwsh.exe"'
    assert in_known_location is True

    command, in_known_location = find_powershell(lambda path: False)
    assert command == "powershell"
    assert in_known_location is False


def test_port_tool_always_available_on_windows() -> None:
    _strategy().ensure_port_tool_available()
    command = _strategy().listening_ports_command(100)
    assert "netstat.exe" in command and '"100"' in command and "LISTENING" in command


def test_windows_strategy_honors_force_powershell() -> None:
    assert get_platform_strategy("win32", force_powershell=False).use_powershell is False
    assert get_platform_strategy("win32").use_powershell is True
