# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
quota_watcher: discover a local Antigravity language server and poll
its model quotas.
"""

__version__ = "0.3.0"

from .client.polling import PollingClient
from .client.reconnector import Reconnector
from .config import WatcherConfig
from .core.types import ConnectionEndpoint, ModelQuota, QuotaData, QuotaSnapshot
from .discovery.service import DiscoveryService
from .session import QuotaSession

__all__ = [
    "ConnectionEndpoint",
    "DiscoveryService",
    "ModelQuota",
    "PollingClient",
    "QuotaData",
    "QuotaSession",
    "QuotaSnapshot",
    "Reconnector",
    "WatcherConfig",
    "__version__",
]
