# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Child process lifecycle for CLI-backed usage sources.

Every child is started in a new session (POSIX) or a new process group
(Windows) and is always terminated together with its descendants, on normal
completion, timeout and cancellation alike.
"""

import asyncio
import logging
import os
import shutil
import signal
import subprocess
from typing import Optional, Sequence

from ..core.constants import LIB_LOGGER_NAME, PROCESS_DRAIN_TIMEOUT
from ..core.errors import ProcessError

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

# Stream reader limit; TUI output can produce very long lines
_STREAM_LIMIT = 1024 * 1024


def resolve_executable(executable: str) -> str:
    """
    Locate an executable on PATH.

    Raises:
        ProcessError: If the executable cannot be found
    """
    resolved = shutil.which(executable)
    if resolved is None:
        raise ProcessError(f"{executable} executable not found.")
    return resolved


async def spawn(executable: str, args: Sequence[str]) -> asyncio.subprocess.Process:
    """
    Start a child with piped stdin/stdout/stderr in a new process group.

    Raises:
        ProcessError: If the executable is missing or cannot be started
    """
    resolved = resolve_executable(executable)
    kwargs = {}
    if os.name == "nt":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    try:
        process = await asyncio.create_subprocess_exec(
            resolved,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
            **kwargs,
        )
    except OSError as e:
        raise ProcessError(f"Failed to start {executable}: {e}") from e

    lib_logger.debug(f"Started {executable} (pid {process.pid})")
    return process


async def kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Hard-kill a child and everything it spawned, then reap it."""
    try:
        if os.name == "nt":
            if process.returncode is None:
                killer = await asyncio.create_subprocess_exec(
                    "taskkill",
                    "/F",
                    "/T",
                    "/PID",
                    str(process.pid),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                await killer.wait()
        else:
            # Group leader pid == pgid; descendants may outlive the leader
            os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError as e:
        lib_logger.debug(f"Process tree kill failed for pid {process.pid}: {e}")
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

    try:
        await asyncio.wait_for(process.wait(), PROCESS_DRAIN_TIMEOUT)
    except asyncio.TimeoutError:
        lib_logger.warning(f"Process {process.pid} did not exit after kill")


async def write_text(process: asyncio.subprocess.Process, text: str) -> None:
    """Write to the child's stdin; a child that already exited is not an error."""
    if process.stdin is None:
        return
    try:
        process.stdin.write(text.encode("utf-8"))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError) as e:
        lib_logger.debug(f"Could not write to pid {process.pid}: {e}")


async def read_line(
    stream: Optional[asyncio.StreamReader], timeout: float
) -> Optional[str]:
    """
    Read one line within timeout.

    Returns:
        The decoded line (without trailing newline), or None on EOF

    Raises:
        asyncio.TimeoutError: If no complete line arrived in time
    """
    if stream is None or timeout <= 0:
        raise asyncio.TimeoutError()
    try:
        raw = await asyncio.wait_for(stream.readline(), timeout)
    except ValueError as e:
        raise ProcessError(f"Unreadable child output: {e}") from e
    if not raw:
        return None
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def drain(stream: Optional[asyncio.StreamReader]) -> str:
    """Read whatever remains on a stream, bounded by PROCESS_DRAIN_TIMEOUT."""
    if stream is None:
        return ""
    try:
        raw = await asyncio.wait_for(stream.read(), PROCESS_DRAIN_TIMEOUT)
    except asyncio.TimeoutError:
        return ""
    return raw.decode("utf-8", errors="replace")


async def run_interactive(
    executable: str,
    args: Sequence[str],
    input_text: str,
    timeout: float,
) -> Optional[str]:
    """
    Drive an interactive CLI with one command and capture its output.

    Writes input_text, collects stdout lines until the child exits or the
    timeout elapses, kills the process tree, then appends any unterminated
    stdout and stderr as context.

    Returns:
        Trimmed combined output, or None if the child printed nothing

    Raises:
        ProcessError: If the executable is missing or cannot be started
    """
    process = await spawn(executable, args)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    lines = []

    try:
        await write_text(process, input_text)
        while True:
            try:
                line = await read_line(process.stdout, deadline - loop.time())
            except asyncio.TimeoutError:
                lib_logger.debug(f"{executable} output window of {timeout}s elapsed")
                break
            if line is None:
                break
            lines.append(line)
    finally:
        await kill_process_tree(process)

    # A partial last line stays buffered when the read is cut off
    remainder = await drain(process.stdout)
    if remainder.strip():
        lines.append(remainder.rstrip("\r\n"))

    stderr = await drain(process.stderr)
    if stderr.strip():
        lines.append(stderr)

    text = "\n".join(lines).strip()
    return text or None
