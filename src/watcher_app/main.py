# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
quota-watcher command line.

    quota-watcher discover   Print the discovered endpoint
    quota-watcher once       Fetch and print one snapshot
    quota-watcher watch      Poll and render a live view until Ctrl+C
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from quota_watcher import __version__
from quota_watcher.client.polling import PollingClient
from quota_watcher.config import WatcherConfig
from quota_watcher.core.errors import QuotaWatcherError, ToolUnavailableError, mask_token
from quota_watcher.core.types import QuotaData
from quota_watcher.discovery.service import DiscoveryService
from quota_watcher.localization import t
from quota_watcher.session import QuotaSession
from quota_watcher.version_info import VersionInfo

from .quota_viewer import print_snapshot, render_panel

console = Console()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    logging.getLogger("quota_watcher").setLevel(logging.DEBUG if verbose else logging.INFO)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _report_discovery_failure(discovery: DiscoveryService) -> None:
    messages = discovery.locator.strategy.error_messages()
    console.print(f"[red]{t('discovery.unableToDetect')}[/red] Please ensure:")
    for requirement in messages.requirements:
        console.print(f"  - {requirement}")


async def cmd_discover(config: WatcherConfig) -> int:
    discovery = DiscoveryService.from_config(config)
    try:
        endpoint = await discovery.discover()
    except ToolUnavailableError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    if endpoint is None:
        _report_discovery_failure(discovery)
        return 1

    console.print(f"[green]{t('discovery.success', port=endpoint.secure_port)}[/green]")
    console.print(f"  HTTP fallback port: {endpoint.fallback_port or '-'}")
    console.print(f"  CSRF token: {mask_token(endpoint.token)}")
    return 0


async def cmd_once(config: WatcherConfig) -> int:
    discovery = DiscoveryService.from_config(config)
    try:
        endpoint = await discovery.discover()
    except ToolUnavailableError as e:
        console.print(f"[red]{e}[/red]")
        return 2
    if endpoint is None:
        _report_discovery_failure(discovery)
        return 1

    client = PollingClient(
        endpoint,
        version_info=VersionInfo.detect(
            ide_version=config.ide_version, extension_version=config.extension_version
        ),
        request_timeout=config.request_timeout,
    )
    try:
        snapshot = await client.fetch_snapshot()
    except QuotaWatcherError as e:
        console.print(f"[red]Failed to fetch quota: {e}[/red]")
        return 1
    finally:
        await client.aclose()

    print_snapshot(snapshot, endpoint, console)
    return 0


async def cmd_watch(config: WatcherConfig) -> int:
    discovery = DiscoveryService.from_config(config)
    session = QuotaSession(discovery, config)
    if not await session.initialize():
        if session.last_error:
            console.print(f"[red]{session.last_error}[/red]")
            return 2
        _report_discovery_failure(discovery)
        return 1

    client = session.client
    status = {"text": ""}

    def on_status(state: str, retry_count: int) -> None:
        status["text"] = f"retrying ({retry_count})" if state == "retrying" else ""

    def on_data(data: QuotaData) -> None:
        if data.needs_login:
            status["text"] = t("quota.needsLogin")

    client.on_status(on_status)
    session.on_data_update(on_data)

    try:
        with Live(render_panel(client.latest_snapshot, client.endpoint), console=console) as live:
            while True:
                live.update(
                    render_panel(client.latest_snapshot, client.endpoint, status["text"])
                )
                await asyncio.sleep(1.0)
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await session.aclose()
    return 0


COMMANDS = {
    "discover": cmd_discover,
    "once": cmd_once,
    "watch": cmd_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quota-watcher",
        description="Monitor Antigravity model quotas from the local language server.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", default=".env", help="Load settings from this .env file")
    parser.add_argument("--interval", type=float, help="Polling interval in seconds (watch)")
    parser.add_argument("command", choices=sorted(COMMANDS), nargs="?", default="watch")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    config = WatcherConfig.from_env(args.env_file)
    if args.interval:
        config.poll_interval = max(1.0, args.interval)

    try:
        return asyncio.run(COMMANDS[args.command](config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
