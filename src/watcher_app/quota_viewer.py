# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Rich rendering of quota snapshots.

Used by both the one-shot and the live watch commands.
"""

import time
from typing import Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from quota_watcher.core.types import ConnectionEndpoint, CreditBalance, QuotaSnapshot


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

MODEL_NAME_WIDTH = 28
PCT_WIDTH = 7
BAR_WIDTH = 20
RESET_WIDTH = 20

# (threshold, icon, color), checked top to bottom against remaining percent
STATUS_LEVELS = (
    (50.0, ":green_circle:", "green"),
    (0.0, ":yellow_circle:", "yellow"),
)
EXHAUSTED_DISPLAY = (":red_circle:", "red")

# =============================================================================


def create_progress_bar(percent: Optional[float], width: int = BAR_WIDTH) -> str:
    """Create a text-based progress bar."""
    if percent is None:
        return "░" * width
    filled = int(max(0.0, min(100.0, percent)) / 100 * width)
    return "▓" * filled + "░" * (width - filled)


def status_for(percent: Optional[float]):
    """Return (icon, color) for a remaining percentage."""
    if percent is None:
        return EXHAUSTED_DISPLAY
    for threshold, icon, color in STATUS_LEVELS:
        if percent > threshold:
            return icon, color
    return EXHAUSTED_DISPLAY


def format_time_ago(timestamp: Optional[float]) -> str:
    """Format timestamp as relative time (e.g., '5 min ago')."""
    if not timestamp:
        return "Never"
    delta = time.time() - timestamp
    if delta < 60:
        return f"{int(delta)}s ago"
    elif delta < 3600:
        return f"{int(delta / 60)} min ago"
    return f"{int(delta / 3600)}h ago"


def _credit_line(name: str, credits: Optional[CreditBalance]) -> Optional[str]:
    if credits is None:
        return None
    return f"{name}: {credits.available}/{credits.monthly}"


def render_snapshot(snapshot: QuotaSnapshot) -> Table:
    table = Table(box=None, show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("", width=2)
    table.add_column("Model", style="cyan", min_width=MODEL_NAME_WIDTH)
    table.add_column("Left", justify="right", min_width=PCT_WIDTH)
    table.add_column("", min_width=BAR_WIDTH)
    table.add_column("Resets", min_width=RESET_WIDTH)

    models = sorted(snapshot.models, key=lambda m: (m.label or m.model_id).lower())
    for model in models:
        icon, color = status_for(
            None if model.is_exhausted else model.remaining_percentage
        )
        pct = model.remaining_percentage
        table.add_row(
            icon,
            model.label,
            Text(f"{pct:.0f}%" if pct is not None else "-", style=color),
            Text(create_progress_bar(pct), style=color),
            model.time_until_reset_formatted,
        )
    return table


def render_panel(
    snapshot: Optional[QuotaSnapshot],
    endpoint: Optional[ConnectionEndpoint] = None,
    status: Optional[str] = None,
) -> Panel:
    """Full panel: header line, model table and credit footer."""
    header_parts = []
    if snapshot is not None and snapshot.plan_name:
        header_parts.append(f"[bold]{snapshot.plan_name}[/bold]")
    if endpoint is not None:
        header_parts.append(f"port {endpoint.secure_port}")
    if snapshot is not None:
        header_parts.append(f"updated {format_time_ago(snapshot.timestamp.timestamp())}")
    if status:
        header_parts.append(f"[dim]{status}[/dim]")

    body = [Text.from_markup(" · ".join(header_parts) or "Waiting for data...")]
    if snapshot is not None:
        body.append(render_snapshot(snapshot))
        credits = [
            line
            for line in (
                _credit_line("Prompt credits", snapshot.prompt_credits),
                _credit_line("Flow credits", snapshot.flow_credits),
            )
            if line
        ]
        if credits:
            body.append(Text("   ".join(credits), style="dim"))

    return Panel(Group(*body), title="Antigravity Quota", border_style="blue")


def print_snapshot(
    snapshot: QuotaSnapshot,
    endpoint: Optional[ConnectionEndpoint] = None,
    console: Optional[Console] = None,
) -> None:
    (console or Console()).print(render_panel(snapshot, endpoint))
