# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Version and OS details embedded in requests to the language server.
"""

import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import __version__

UNKNOWN = "unknown"

_OS_NAMES = {
    "win32": "windows",
    "darwin": "darwin",
    "linux": "linux",
}


@dataclass(frozen=True)
class VersionInfo:
    """Extension, IDE and OS identity reported to the language server."""

    extension_version: str = UNKNOWN
    ide_name: str = "antigravity"
    ide_version: str = UNKNOWN
    os: str = UNKNOWN

    @classmethod
    def detect(
        cls,
        ide_version: Optional[str] = None,
        extension_version: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> "VersionInfo":
        platform = platform or sys.platform
        return cls(
            extension_version=extension_version or __version__,
            ide_version=ide_version or UNKNOWN,
            os=_OS_NAMES.get(platform, platform),
        )

    def probe_body(self) -> Dict[str, Any]:
        """Body of the liveness probe request."""
        return {
            "context": {
                "properties": {
                    "devMode": "false",
                    "extensionVersion": self.extension_version,
                    "hasAnthropicModelAccess": "true",
                    "ide": self.ide_name,
                    "ideVersion": self.ide_version,
                    "installationId": "test-detection",
                    "language": "UNSPECIFIED",
                    "os": self.os,
                    "requestedModelId": "MODEL_UNSPECIFIED",
                }
            }
        }

    def user_status_body(self) -> Dict[str, Any]:
        """Body of the quota status request."""
        return {
            "metadata": {
                "ideName": self.ide_name,
                "extensionName": self.ide_name,
                "ideVersion": self.ide_version,
                "locale": "en",
            }
        }

    def describe(self) -> str:
        return f"Extension v{self.extension_version} on {self.ide_name} v{self.ide_version} ({self.os})"
