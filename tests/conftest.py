"""Shared fixtures for usage monitor tests."""

from __future__ import annotations

import asyncio
import sys
import textwrap
from pathlib import Path
from typing import Callable, Iterator

import httpx
import pytest

ENV_VARS_TO_CLEAR = [
    "USAGE_MONITOR_SETTINGS",
    "USAGE_MONITOR_REFRESH_MINUTES",
    "USAGE_MONITOR_CODEX_ENABLED",
    "USAGE_MONITOR_CODEX_SOURCE_MODE",
    "USAGE_MONITOR_CLAUDE_ENABLED",
    "USAGE_MONITOR_CLAUDE_SOURCE_MODE",
    "USAGE_MONITOR_LOG_ROOTS",
    "USAGE_MONITOR_WATCH_FILE_CHANGES",
]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point every credential and settings lookup at empty temp directories."""
    for name in ENV_VARS_TO_CLEAR:
        monkeypatch.delenv(name, raising=False)
    codex_home = tmp_path / "codex-home"
    claude_home = tmp_path / "claude-home"
    codex_home.mkdir()
    claude_home.mkdir()
    monkeypatch.setenv("CODEX_HOME", str(codex_home))
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(claude_home))
    monkeypatch.setenv("USAGE_MONITOR_SETTINGS", str(tmp_path / "settings.json"))


@pytest.fixture
def codex_home(tmp_path: Path) -> Path:
    return tmp_path / "codex-home"


@pytest.fixture
def claude_home(tmp_path: Path) -> Path:
    return tmp_path / "claude-home"


@pytest.fixture
def write_script(tmp_path: Path) -> Callable[[str, str], list[str]]:
    """Write a Python script and return the argv prefix that runs it."""

    def _write(name: str, body: str) -> list[str]:
        script = tmp_path / f"{name}.py"
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        return [sys.executable, str(script)]

    return _write


@pytest.fixture
def http_client() -> Iterator[httpx.AsyncClient]:
    """An HTTP client for fake fetchers, closed when the test ends."""
    client = httpx.AsyncClient()
    yield client
    asyncio.run(client.aclose())
