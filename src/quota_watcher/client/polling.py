# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Scheduled quota polling with a bounded retry budget.

State machine:
    IDLE -> FIRST_FETCH -> {POLLING, RETRYING} -> EXHAUSTED -> POLLING

- start_polling() fetches once immediately, then every interval.
- A failed fetch schedules a single delayed retry and enters RETRYING,
  which suppresses scheduled ticks until the retry has run.
- When the retry budget runs out the counter is reset, the error is
  published, and the schedule simply carries on. Only stop_polling()
  halts it.

Every deferred callback checks the _stopped flag before acting, so a
retry that fires after stop_polling() does nothing. The _fetching flag
is held for the whole request; ticks and quick refreshes that arrive
meanwhile are dropped.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from ..core.constants import (
    MAX_RETRY_COUNT,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
    USER_STATUS_PATH,
)
from ..core.errors import QuotaWatcherError, ResponseParseError, classify_error
from ..core.types import ConnectionEndpoint, PollingState, QuotaSnapshot
from ..version_info import VersionInfo
from .events import Listeners
from .snapshot import check_status_code, parse_user_status
from .transport import post_json

lib_logger = logging.getLogger("quota_watcher")

STATUS_FETCHING = "fetching"
STATUS_RETRYING = "retrying"
STATUS_OK = "ok"


class PollingClient:
    """
    Polls GetUserStatus on a ConnectionEndpoint and publishes snapshots.

    Subscribe with on_snapshot(), on_error() and on_status(). Snapshot
    listeners are always notified before status listeners.
    """

    def __init__(
        self,
        endpoint: ConnectionEndpoint,
        version_info: Optional[VersionInfo] = None,
        request_timeout: float = REQUEST_TIMEOUT,
        max_retry_count: int = MAX_RETRY_COUNT,
        retry_delay: float = RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._version_info = version_info or VersionInfo.detect()
        self._request_timeout = request_timeout
        self._max_retry_count = max_retry_count
        self._retry_delay = retry_delay
        self._http = httpx.AsyncClient(verify=False, transport=transport)

        self._state = PollingState.IDLE
        self._retry_count = 0
        self._is_first_attempt = True
        self._stopped = False
        self._fetching = False
        self._interval: Optional[float] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._latest: Optional[QuotaSnapshot] = None

        self._snapshot_listeners = Listeners("snapshot")
        self._error_listeners = Listeners("error")
        self._status_listeners = Listeners("status")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def endpoint(self) -> ConnectionEndpoint:
        return self._endpoint

    @property
    def state(self) -> str:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def latest_snapshot(self) -> Optional[QuotaSnapshot]:
        return self._latest

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def on_snapshot(self, callback: Callable[[QuotaSnapshot], Any]) -> Callable[[], None]:
        return self._snapshot_listeners.subscribe(callback)

    def on_error(self, callback: Callable[[Exception], Any]) -> Callable[[], None]:
        return self._error_listeners.subscribe(callback)

    def on_status(self, callback: Callable[[str, int], Any]) -> Callable[[], None]:
        """Status callbacks receive (status, retry_count)."""
        return self._status_listeners.subscribe(callback)

    # =========================================================================
    # CONTROL
    # =========================================================================

    def set_endpoint(self, endpoint: ConnectionEndpoint) -> None:
        """Rebind to a newly discovered endpoint without touching the schedule."""
        self._endpoint = endpoint
        self._retry_count = 0

    async def start_polling(self, interval: float) -> None:
        """
        Fetch immediately, then every interval seconds until stopped.

        Any existing schedule is cancelled first.
        """
        self.stop_polling()
        self._stopped = False
        self._interval = interval

        await self._fetch_quota()
        if self._stopped:
            return
        self._poll_task = asyncio.create_task(self._poll_loop(interval))

    def stop_polling(self) -> None:
        self._stopped = True
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None
        self._retry_count = 0
        self._state = PollingState.IDLE

    stop = stop_polling

    async def quick_refresh(self) -> None:
        """
        Fetch now, outside the schedule.

        Skipped while a retry is pending or a request is in flight, so
        there is never more than one logical fetch at a time.
        """
        if self._state == PollingState.RETRYING or self._fetching:
            lib_logger.debug("Quick refresh skipped, a fetch or retry is already pending")
            return
        self._retry_count = 0
        await self._do_fetch()

    async def fetch_snapshot(self) -> QuotaSnapshot:
        """
        Perform one request and return the parsed snapshot.

        Bypasses the state machine and listeners entirely.

        Raises:
            QuotaWatcherError: Any transport, application or parse failure
        """
        endpoint = self._endpoint
        response = await post_json(
            self._http,
            endpoint,
            USER_STATUS_PATH,
            self._version_info.user_status_body(),
            timeout=self._request_timeout,
        )
        check_status_code(response)
        try:
            return parse_user_status(response)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ResponseParseError(f"Malformed user status: {type(e).__name__}: {e}") from e

    async def aclose(self) -> None:
        self.stop_polling()
        self._error_listeners.cancel_pending()
        await self._http.aclose()

    # =========================================================================
    # FETCH CYCLE
    # =========================================================================

    async def _poll_loop(self, interval: float) -> None:
        while not self._stopped:
            await asyncio.sleep(interval)
            if self._stopped:
                break
            try:
                await self._fetch_quota()
            except Exception:
                lib_logger.exception("Unexpected error during scheduled quota fetch")

    async def _fetch_quota(self) -> None:
        if self._state == PollingState.RETRYING:
            lib_logger.debug("Scheduled fetch skipped, a retry is pending")
            return
        await self._do_fetch()

    async def _do_fetch(self) -> None:
        if self._fetching:
            lib_logger.debug("Fetch skipped, another request is in flight")
            return

        if self._is_first_attempt:
            self._state = PollingState.FIRST_FETCH
            self._status_listeners.emit(STATUS_FETCHING, 0)

        self._fetching = True
        try:
            try:
                snapshot = await self.fetch_snapshot()
            finally:
                self._fetching = False
        except QuotaWatcherError as e:
            self._handle_failure(e)
            return

        self._retry_count = 0
        self._is_first_attempt = False
        self._state = PollingState.POLLING
        self._latest = snapshot

        self._snapshot_listeners.emit(snapshot)
        self._status_listeners.emit(STATUS_OK, 0)

    def _handle_failure(self, error: QuotaWatcherError) -> None:
        if self._stopped:
            lib_logger.debug(f"Quota fetch failed after stop: {error}")
            self._retry_count = 0
            self._state = PollingState.IDLE
            return

        self._retry_count += 1
        if self._retry_count < self._max_retry_count:
            lib_logger.warning(
                f"Quota fetch failed ({classify_error(error)}): {error}. "
                f"Retry {self._retry_count}/{self._max_retry_count - 1} "
                f"in {self._retry_delay}s"
            )
            self._state = PollingState.RETRYING
            self._status_listeners.emit(STATUS_RETRYING, self._retry_count)
            self._retry_task = asyncio.create_task(self._delayed_retry())
            return

        lib_logger.warning(
            f"Quota fetch failed {self._max_retry_count} times in a row: {error}"
        )
        self._retry_count = 0
        self._state = PollingState.EXHAUSTED
        self._error_listeners.emit(error)
        # Budget resets; the next scheduled tick starts over
        if self._state == PollingState.EXHAUSTED:
            self._state = PollingState.IDLE if self._stopped else PollingState.POLLING

    async def _delayed_retry(self) -> None:
        await asyncio.sleep(self._retry_delay)
        if self._stopped:
            return
        self._retry_task = None
        # State stays RETRYING until this request settles
        await self._do_fetch()
