# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error taxonomy for discovery and polling.

Everything except ToolUnavailableError is expected to heal on its own:
not-found conditions are retried, transport failures trigger
re-discovery, protocol mismatches fall back to plain HTTP and
application/parse errors count against the retry budget.
"""

import re
from typing import Any, Optional


class QuotaWatcherError(Exception):
    """Base class for all quota watcher errors."""


class DiscoveryNotFoundError(QuotaWatcherError):
    """The language server process, or its listening ports, could not be found."""


class ToolUnavailableError(QuotaWatcherError):
    """
    No supported OS introspection utility is installed.

    The message is user-facing. This is never retried.
    """


class TransportError(QuotaWatcherError):
    """Connection refused, reset or timed out while talking to the server."""


class ProtocolMismatchError(TransportError):
    """The TLS handshake failed because the server speaks plain HTTP."""


class ApplicationError(QuotaWatcherError):
    """A well-formed response carried a non-OK status."""

    def __init__(self, message: str, code: Any = None):
        super().__init__(message)
        self.code = code


class ResponseParseError(QuotaWatcherError):
    """The response body was not valid JSON or lacked required fields."""


# =============================================================================
# CLASSIFICATION
# =============================================================================

ERROR_TRANSPORT = "transport"
ERROR_PROTOCOL_MISMATCH = "protocol_mismatch"
ERROR_APPLICATION = "application"
ERROR_PARSE = "parse"
ERROR_TOOL_UNAVAILABLE = "tool_unavailable"
ERROR_NOT_FOUND = "not_found"
ERROR_UNKNOWN = "unknown"

_TRANSPORT_MARKERS = (
    "econnrefused",
    "etimedout",
    "econnreset",
    "connection refused",
    "connection reset",
    "timed out",
    "timeout",
    "socket hang up",
    "network",
)

_PROTOCOL_MISMATCH_MARKERS = (
    "wrong_version_number",
    "wrong version number",
    "eproto",
)

# Shell output when the listing tool itself is missing or rejected
_TOOL_MISSING_PATTERN = re.compile(
    r"not recognized|command not found|不是内部或外部命令"
    r"|no such file or directory|cannot find the path",
    re.IGNORECASE,
)


def is_protocol_mismatch(error: BaseException) -> bool:
    """True if a TLS failure looks like the server answered in plaintext."""
    if isinstance(error, ProtocolMismatchError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _PROTOCOL_MISMATCH_MARKERS)


def is_transport_error(error: BaseException) -> bool:
    """True for connection-class failures that warrant re-discovery."""
    if isinstance(error, TransportError):
        return True
    if isinstance(error, (ApplicationError, ResponseParseError)):
        return False
    message = str(error).lower()
    return any(marker in message for marker in _TRANSPORT_MARKERS)


def is_tool_missing(message: str) -> bool:
    """True if command output says the listing tool itself is unavailable."""
    return bool(_TOOL_MISSING_PATTERN.search(message or ""))


def classify_error(error: BaseException) -> str:
    """Map an exception to one of the ERROR_* categories."""
    if isinstance(error, ToolUnavailableError):
        return ERROR_TOOL_UNAVAILABLE
    if isinstance(error, DiscoveryNotFoundError):
        return ERROR_NOT_FOUND
    if is_protocol_mismatch(error):
        return ERROR_PROTOCOL_MISMATCH
    if isinstance(error, ApplicationError):
        return ERROR_APPLICATION
    if isinstance(error, ResponseParseError):
        return ERROR_PARSE
    if is_transport_error(error):
        return ERROR_TRANSPORT
    return ERROR_UNKNOWN


def mask_token(token: Optional[str], visible: int = 4) -> str:
    """Mask a CSRF token for logging, keeping only the first few characters."""
    if not token:
        return "<none>"
    if len(token) <= visible:
        return "*" * len(token)
    return f"{token[:visible]}...({len(token)} chars)"
