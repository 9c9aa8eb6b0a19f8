# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Observer lists used to publish snapshots, errors and status changes.

Listeners are called in subscription order. A listener that raises is
logged and skipped; it never stops delivery to the others. Coroutine
listeners are scheduled as tasks so a slow consumer (e.g. a reconnect)
does not hold up the publisher.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Set

lib_logger = logging.getLogger("quota_watcher")


class Listeners:
    def __init__(self, name: str):
        self.name = name
        self._callbacks: List[Callable[..., Any]] = []
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        """Add a listener. Returns a function that removes it again."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, *args: Any) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._on_task_done)
            except Exception:
                lib_logger.exception(f"Error in {self.name} listener")

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            lib_logger.error(
                f"Error in {self.name} listener: {type(exc).__name__}: {exc}"
            )

    async def drain(self) -> None:
        """Wait for every scheduled coroutine listener to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()
