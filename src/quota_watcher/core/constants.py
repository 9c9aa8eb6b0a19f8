# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Constants shared across discovery and polling.

Timeouts are in seconds unless the name says otherwise.
"""

# =============================================================================
# LANGUAGE SERVER PROCESS
# =============================================================================

PROCESS_NAMES = {
    "win32": "language_server_windows_x64.exe",
    "darwin": "language_server_macos",
    "linux": "language_server_linux",
}

PLATFORM_NAMES = {
    "win32": "Windows",
    "darwin": "macOS",
    "linux": "Linux",
}

# Command-line flags the language server is launched with
PORT_FLAG = "--extension_server_port"
TOKEN_FLAG = "--csrf_token"
APP_DATA_DIR_FLAG = "--app_data_dir"
APP_IDENTITY = "antigravity"

# =============================================================================
# HTTP API
# =============================================================================

LOOPBACK_HOST = "127.0.0.1"
SERVICE_PREFIX = "/exa.language_server_pb.LanguageServerService"
PROBE_PATH = f"{SERVICE_PREFIX}/GetUnleashData"
USER_STATUS_PATH = f"{SERVICE_PREFIX}/GetUserStatus"

CSRF_HEADER = "X-Codeium-Csrf-Token"
CONNECT_PROTOCOL_VERSION = "1"

# Application-level status codes that mean "ok"
OK_STATUS_CODES = (0, "0", "OK", "Ok", "ok", "success", "SUCCESS")

# =============================================================================
# TIMEOUTS AND RETRY BUDGETS
# =============================================================================

PROCESS_LIST_TIMEOUT = 15.0
PORT_LIST_TIMEOUT = 3.0
PROBE_TIMEOUT = 2.0
REQUEST_TIMEOUT = 5.0
TOOL_CHECK_TIMEOUT = 3.0

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ATTEMPT_DELAY = 2.0

MAX_RETRY_COUNT = 3
RETRY_DELAY = 5.0
DEFAULT_POLL_INTERVAL = 15.0

# Reset time used for quotas that never reset (max JS Date, in ms)
NO_RESET_SENTINEL_MS = 8_640_000_000_000_000
# Unparsable reset timestamps are assumed to be this far away
UNKNOWN_RESET_FALLBACK_MS = 24 * 60 * 60 * 1000
