# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .locator import ProcessLocator
from .platforms import PlatformStrategy, get_platform_strategy
from .prober import PortProber
from .service import DiscoveryService

__all__ = [
    "DiscoveryService",
    "PlatformStrategy",
    "PortProber",
    "ProcessLocator",
    "get_platform_strategy",
]
