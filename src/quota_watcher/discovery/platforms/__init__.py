# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Platform strategy selection.

The strategy is chosen once from the running OS and kept for the
whole session.
"""

import sys
from typing import Optional

from ...core.constants import PLATFORM_NAMES, PROCESS_NAMES
from .base import PlatformStrategy, extract_flags, is_target_process
from .unix import LinuxStrategy, MacOSStrategy, UnixStrategy
from .windows import WindowsStrategy

__all__ = [
    "PlatformStrategy",
    "UnixStrategy",
    "LinuxStrategy",
    "MacOSStrategy",
    "WindowsStrategy",
    "extract_flags",
    "get_platform_strategy",
    "get_process_name",
    "get_platform_name",
    "is_target_process",
]


class UnsupportedPlatformError(RuntimeError):
    pass


def _resolve(platform: Optional[str]) -> str:
    platform = platform or sys.platform
    # sys.platform is "linux" on modern Pythons, but tolerate "linux2"
    if platform.startswith("linux"):
        return "linux"
    return platform


def get_process_name(platform: Optional[str] = None) -> str:
    platform = _resolve(platform)
    try:
        return PROCESS_NAMES[platform]
    except KeyError:
        raise UnsupportedPlatformError(f"Unsupported platform: {platform}") from None


def get_platform_name(platform: Optional[str] = None) -> str:
    platform = _resolve(platform)
    return PLATFORM_NAMES.get(platform, platform)


def get_platform_strategy(
    platform: Optional[str] = None, force_powershell: bool = True
) -> PlatformStrategy:
    """
    Build the strategy for the given (or current) platform.

    Args:
        platform: sys.platform style identifier, defaults to the running OS
        force_powershell: On Windows, start with PowerShell rather than wmic

    Raises:
        UnsupportedPlatformError: Not Windows, macOS or Linux
    """
    platform = _resolve(platform)
    if platform == "win32":
        return WindowsStrategy(use_powershell=force_powershell)
    if platform == "darwin":
        return MacOSStrategy()
    if platform == "linux":
        return LinuxStrategy()
    raise UnsupportedPlatformError(f"Unsupported platform: {platform}")
