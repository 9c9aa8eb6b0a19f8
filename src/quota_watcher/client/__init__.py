# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .events import Listeners
from .polling import PollingClient
from .reconnector import Reconnector
from .snapshot import parse_user_status, to_quota_data

__all__ = [
    "Listeners",
    "PollingClient",
    "Reconnector",
    "parse_user_status",
    "to_quota_data",
]
