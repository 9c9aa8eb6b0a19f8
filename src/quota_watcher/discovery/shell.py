# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Async shell command execution with hard timeouts.

A hung subprocess must never stall the scheduler, so every call is
bounded and the child is killed when the deadline passes.
"""

import asyncio
import logging
from typing import Awaitable, Callable

lib_logger = logging.getLogger("quota_watcher")

# Signature shared by run_command and the fakes used in tests
CommandRunner = Callable[[str, float], Awaitable[str]]


class CommandError(Exception):
    """A shell command exited non-zero or timed out."""

    def __init__(self, command: str, message: str, returncode: int = -1):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


async def run_command(command: str, timeout: float) -> str:
    """
    Run a shell command and return its stdout.

    Args:
        command: Command line passed to the system shell
        timeout: Seconds before the child is killed

    Returns:
        Decoded stdout

    Raises:
        CommandError: Non-zero exit status or timeout. The message
            includes stderr so callers can pattern-match on it.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandError(command, f"Command timed out after {timeout}s: {command}")

    out = stdout.decode("utf-8", errors="replace")
    if process.returncode != 0:
        err = stderr.decode("utf-8", errors="replace").strip()
        raise CommandError(
            command,
            f"Command failed ({process.returncode}): {command}\n{err}",
            returncode=process.returncode,
        )
    return out
