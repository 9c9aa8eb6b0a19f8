# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
User-facing message lookup.

Only English ships with the library; callers may register additional
tables with set_messages().
"""

from typing import Dict, Optional

DEFAULT_MESSAGES: Dict[str, str] = {
    "discovery.processNotFound": "language_server process not found",
    "discovery.noListeningPorts": "Process is not listening on any ports",
    "discovery.noWorkingPort": "Unable to find a working API port",
    "discovery.unableToDetect": "Unable to detect the Antigravity process.",
    "discovery.success": "Detection successful! Port: {port}",
    "tool.portCommandRequired": "Port detection requires lsof, ss, or netstat. Please install one of them",
    "tool.portCommandRequiredDarwin": "Port detection requires lsof or netstat. Please install one of them",
    "tool.unixUnavailable": "ps/lsof commands are unavailable",
    "tool.powershellFailed": "PowerShell failed",
    "tool.wmicFailed": "wmic/PowerShell failed",
    "requirement.running": "Antigravity is running",
    "requirement.process": "{process} process is running",
    "requirement.unixPermission": "Permission to execute ps/lsof",
    "requirement.permission": "Permission to execute commands",
    "quota.expired": "Expired",
    "quota.noReset": "No reset",
    "quota.needsLogin": "Login first",
}

_current: Dict[str, str] = dict(DEFAULT_MESSAGES)


def set_messages(messages: Optional[Dict[str, str]]) -> None:
    """Overlay a translated table on top of the English defaults."""
    global _current
    _current = dict(DEFAULT_MESSAGES)
    if messages:
        _current.update(messages)


def t(key: str, **params: object) -> str:
    """Look up a message and substitute {param} placeholders."""
    text = _current.get(key) or DEFAULT_MESSAGES.get(key) or key
    for name, value in params.items():
        text = text.replace(f"{{{name}}}", str(value))
    return text
