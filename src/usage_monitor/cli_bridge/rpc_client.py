# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Newline-delimited JSON-RPC 2.0 over a child process's stdio.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence

from ..core.constants import LIB_LOGGER_NAME, RPC_REQUEST_TIMEOUT
from ..core.errors import ProcessError
from .process import drain, kill_process_tree, read_line, spawn, write_text

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class JsonRpcProcessClient:
    """
    JSON-RPC client bound to one child process.

    Use as an async context manager; the process tree is killed on exit.
    Lines that are not JSON, notifications, and replies for other ids are
    skipped while waiting for a response.
    """

    def __init__(
        self,
        executable: str,
        args: Sequence[str] = (),
        request_timeout: float = RPC_REQUEST_TIMEOUT,
    ):
        self._executable = executable
        self._args = tuple(args)
        self._request_timeout = request_timeout
        self._process: Optional[asyncio.subprocess.Process] = None

    async def __aenter__(self) -> "JsonRpcProcessClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        self._process = await spawn(self._executable, self._args)

    async def close(self) -> None:
        if self._process is None:
            return
        process, self._process = self._process, None
        await kill_process_tree(process)
        stderr = await drain(process.stderr)
        if stderr.strip():
            lib_logger.debug(f"{self._executable} stderr: {stderr.strip()[:500]}")

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._send(message)

    async def request(
        self,
        request_id: int,
        method: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a request and wait for the reply with the same id.

        Returns:
            The result object (empty dict if the result is not an object)

        Raises:
            ProcessError: On timeout, child exit, or an error reply
        """
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        await self._send(message)

        process = self._require_process()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._request_timeout

        while True:
            try:
                line = await read_line(process.stdout, deadline - loop.time())
            except asyncio.TimeoutError:
                raise ProcessError(f"{self._executable} RPC '{method}' timed out.")
            if line is None:
                raise ProcessError(f"{self._executable} RPC process exited.")

            reply = _decode(line)
            if reply is None or reply.get("id") != request_id:
                continue

            error = reply.get("error")
            if error is not None:
                detail = error.get("message") if isinstance(error, dict) else error
                raise ProcessError(f"{self._executable} RPC '{method}' failed: {detail}")

            result = reply.get("result")
            return result if isinstance(result, dict) else {}

    async def _send(self, message: Dict[str, Any]) -> None:
        process = self._require_process()
        if process.returncode is not None:
            raise ProcessError(f"{self._executable} RPC process exited.")
        await write_text(process, json.dumps(message) + "\n")

    def _require_process(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise ProcessError("RPC process not started.")
        return self._process


def _decode(line: str) -> Optional[Dict[str, Any]]:
    line = line.strip()
    if not line:
        return None
    try:
        decoded = json.loads(line)
    except json.JSONDecodeError:
        lib_logger.debug(f"Skipping non-JSON RPC line: {line[:200]}")
        return None
    return decoded if isinstance(decoded, dict) else None
