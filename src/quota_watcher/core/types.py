# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the quota watcher.

This module contains dataclasses used across the discovery and
client packages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


# =============================================================================
# DISCOVERY TYPES
# =============================================================================


@dataclass(frozen=True)
class ProcessRecord:
    """
    A language server process parsed from OS command output.

    Only lives for the duration of a single discovery attempt.
    """

    pid: int
    declared_port: int  # 0 if the port flag is absent
    token: str
    ppid: Optional[int] = None


@dataclass
class ConnectionCandidate:
    """
    Result of ProcessLocator.detect().

    Holds the located process and every loopback port it listens on.
    """

    record: ProcessRecord
    ports: List[int]  # Ascending, de-duplicated
    attempts: int = 1  # Attempt slots consumed (structural fallbacks are free)


@dataclass(frozen=True)
class ConnectionEndpoint:
    """
    Everything needed to talk to the local quota API.

    Replaced wholesale on reconnection, never edited field by field.
    """

    secure_port: int  # Probed port, spoken to over HTTPS
    fallback_port: int  # Declared port, used for plaintext HTTP fallback
    token: str


@dataclass(frozen=True)
class PlatformErrorMessages:
    """User-facing error texts supplied by a platform strategy."""

    process_not_found: str
    tool_unavailable: str
    requirements: List[str] = field(default_factory=list)


# =============================================================================
# QUOTA TYPES
# =============================================================================


@dataclass(frozen=True)
class ModelQuota:
    """Quota state for a single model."""

    model_id: str
    label: str
    remaining_fraction: Optional[float]
    remaining_percentage: Optional[float]
    is_exhausted: bool
    reset_time: Optional[datetime]  # None means the quota never resets
    time_until_reset_ms: int
    time_until_reset_formatted: str


@dataclass(frozen=True)
class CreditBalance:
    """Prompt or flow credit balance reported alongside model quotas."""

    available: int
    monthly: int

    @property
    def remaining_fraction(self) -> Optional[float]:
        if self.monthly <= 0:
            return None
        return max(0.0, min(1.0, self.available / self.monthly))


@dataclass(frozen=True)
class QuotaSnapshot:
    """
    One parsed quota response.

    Each successful poll replaces the previous snapshot; no history is kept.
    """

    timestamp: datetime
    models: List[ModelQuota]
    plan_name: Optional[str] = None
    prompt_credits: Optional[CreditBalance] = None
    flow_credits: Optional[CreditBalance] = None


@dataclass
class ModelSummary:
    """Flattened model entry handed to display code."""

    id: str
    name: str
    pct: float
    time: str
    reset_time: float  # Epoch seconds, 0 when there is no countdown


@dataclass
class QuotaData:
    """
    Display-ready view of the latest snapshot.

    needs_login is set when the server reports that no account is signed in.
    """

    models: List[ModelSummary] = field(default_factory=list)
    plan_name: Optional[str] = None
    needs_login: bool = False


# =============================================================================
# POLLING STATE
# =============================================================================


class PollingState:
    """
    Modes of the polling state machine.

    IDLE -> FIRST_FETCH -> {POLLING, RETRYING} -> EXHAUSTED -> POLLING
    """

    IDLE = "idle"
    FIRST_FETCH = "first_fetch"
    POLLING = "polling"
    RETRYING = "retrying"  # Suppresses scheduled ticks
    EXHAUSTED = "exhausted"  # Transient, budget was just reset
