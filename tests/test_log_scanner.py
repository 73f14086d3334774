"""Tests for local JSONL usage log parsing, incremental scanning and watching."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from usage_monitor.core.types import ProviderIdentity
from usage_monitor.logs import (
    CacheStore,
    FileCacheEntry,
    LogChangeWatcher,
    LogScanner,
    discover_log_files,
    parse_log_line,
    scan_file,
)

TODAY = date(2026, 10, 18)


def _usage_line(timestamp: str, input_tokens: int, output_tokens: int, **extra) -> str:
    return json.dumps(
        {
            "timestamp": timestamp,
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
            **extra,
        }
    )


def _write_lines(path: Path, lines: list[str], mode: str = "w") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, mode, encoding="utf-8", newline="\n") as f:
        for line in lines:
            f.write(line + "\n")
    return path


@pytest.fixture
def log_root(tmp_path: Path) -> Path:
    root = tmp_path / "logs"
    root.mkdir()
    return root


@pytest.fixture
def scanner(tmp_path: Path) -> LogScanner:
    return LogScanner(CacheStore(tmp_path / "state" / "scan-cache.json"))


# =============================================================================
# PARSER
# =============================================================================


def test_parse_usage_line_with_model() -> None:
    line = '{"timestamp":"2025-01-01T00:00:00Z","model":"claude-3-5","usage":{"input_tokens":5,"output_tokens":7}}'

    record = parse_log_line(line, None, "source.jsonl")

    assert record is not None
    assert record.provider == ProviderIdentity.CLAUDE
    assert (record.input_tokens, record.output_tokens, record.total_tokens) == (5, 7, 12)
    assert record.timestamp == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert record.source_file == "source.jsonl"


def test_parse_token_count_event() -> None:
    line = json.dumps(
        {
            "timestamp": "2026-01-16T04:44:17.511Z",
            "type": "event_msg",
            "payload": {
                "type": "token_count",
                "info": {"last_token_usage": {"input_tokens": 10, "output_tokens": 2, "total_tokens": 12}},
            },
        }
    )

    record = parse_log_line(line, ProviderIdentity.CODEX)

    assert record is not None
    assert record.provider == ProviderIdentity.CODEX
    assert (record.input_tokens, record.output_tokens, record.total_tokens) == (10, 2, 12)


def test_parse_nested_message_usage() -> None:
    """Project logs carry usage and model under message."""
    line = json.dumps(
        {
            "timestamp": "2026-10-18T09:00:00Z",
            "sessionId": "abc",
            "message": {"model": "claude-sonnet-4", "usage": {"input_tokens": 3, "output_tokens": 4}},
        }
    )

    record = parse_log_line(line)

    assert record is not None
    assert record.provider == ProviderIdentity.CLAUDE
    assert record.session_id == "abc"
    assert record.total_tokens == 7


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "{not json",
        "[1, 2, 3]",
        '{"timestamp":"2025-01-01T00:00:00Z","model":"gpt-4"}',
        '{"usage":{"input_tokens":5,"output_tokens":7}}',
        '{"timestamp":"2025-01-01T00:00:00Z","usage":{"input_tokens":0,"output_tokens":0}}',
    ],
)
def test_lines_without_usage_are_skipped(line: str) -> None:
    assert parse_log_line(line) is None


def test_explicit_total_and_provider_win() -> None:
    line = json.dumps(
        {
            "ts": 1760000000,
            "provider": "Codex",
            "model": "claude-3-5",
            "prompt_tokens": 2,
            "completion_tokens": 3,
            "total_tokens": 9,
        }
    )

    record = parse_log_line(line, ProviderIdentity.CLAUDE)

    assert record is not None
    assert record.provider == ProviderIdentity.CODEX
    assert (record.input_tokens, record.output_tokens, record.total_tokens) == (2, 3, 9)


# =============================================================================
# INCREMENTAL FILE SCAN
# =============================================================================


def test_scan_file_reads_only_appended_lines(log_root: Path) -> None:
    path = _write_lines(log_root / "a.jsonl", [_usage_line("2026-10-18T01:00:00Z", 1, 1)])

    entry = scan_file(path, FileCacheEntry(path=str(path)))
    assert entry.records == 1
    assert entry.offset == path.stat().st_size

    _write_lines(path, [_usage_line("2026-10-18T02:00:00Z", 2, 3)], mode="a")
    entry = scan_file(path, entry)

    assert entry.records == 2
    assert entry.daily[TODAY].total_tokens == 7
    assert entry.offset == path.stat().st_size


def test_scan_file_leaves_the_given_entry_untouched(log_root: Path) -> None:
    path = _write_lines(log_root / "a.jsonl", [_usage_line("2026-10-18T01:00:00Z", 1, 1)])
    original = FileCacheEntry(path=str(path))

    updated = scan_file(path, original)

    assert updated is not original
    assert original.records == 0
    assert original.daily == {}


def test_partial_last_line_is_completed_later(log_root: Path) -> None:
    """A line without a newline is held back until the rest is written."""
    path = log_root / "a.jsonl"
    line = _usage_line("2026-10-18T01:00:00Z", 4, 5)
    head, tail = line[:20], line[20:]
    path.write_text(head, encoding="utf-8")

    entry = scan_file(path, FileCacheEntry(path=str(path)))
    assert entry.records == 0
    assert entry.incomplete_line == head.encode("utf-8")

    with open(path, "a", encoding="utf-8", newline="\n") as f:
        f.write(tail + "\n")
    entry = scan_file(path, entry)

    assert entry.records == 1
    assert entry.incomplete_line is None
    assert entry.daily[TODAY].total_tokens == 9


def test_truncated_file_is_rescanned(log_root: Path) -> None:
    path = _write_lines(
        log_root / "a.jsonl",
        [_usage_line("2026-10-18T01:00:00Z", 10, 10), _usage_line("2026-10-18T02:00:00Z", 10, 10)],
    )
    entry = scan_file(path, FileCacheEntry(path=str(path)))
    assert entry.daily[TODAY].total_tokens == 40

    _write_lines(path, [_usage_line("2026-10-18T03:00:00Z", 1, 2)])
    entry = scan_file(path, entry)

    assert entry.records == 1
    assert entry.daily[TODAY].total_tokens == 3


def test_crlf_lines_are_parsed(log_root: Path) -> None:
    path = log_root / "a.jsonl"
    path.write_bytes((_usage_line("2026-10-18T01:00:00Z", 1, 2) + "\r\n").encode("utf-8"))

    entry = scan_file(path, FileCacheEntry(path=str(path)))

    assert entry.records == 1


def test_later_records_of_one_session_accumulate(log_root: Path) -> None:
    path = _write_lines(
        log_root / "rollout-1.jsonl",
        [
            _usage_line("2026-10-18T01:00:00Z", 1, 1),
            _usage_line("2026-10-18T02:00:00Z", 2, 2),
            _usage_line("2026-10-18T00:30:00Z", 100, 100),
        ],
    )

    entry = scan_file(path, FileCacheEntry(path=str(path)))

    session = entry.last_session
    assert session is not None
    assert session.session_id == "rollout-1"
    assert session.total_tokens == 6
    assert session.last_activity == datetime(2026, 10, 18, 2, tzinfo=timezone.utc)
    assert entry.daily[TODAY].total_tokens == 206


# =============================================================================
# SCANNER
# =============================================================================


def test_discover_sorts_and_skips_missing_roots(tmp_path: Path, log_root: Path) -> None:
    _write_lines(log_root / "b" / "two.jsonl", [])
    _write_lines(log_root / "a" / "one.jsonl", [])
    (log_root / "notes.txt").write_text("x", encoding="utf-8")

    assert discover_log_files(log_root) == [log_root / "a" / "one.jsonl", log_root / "b" / "two.jsonl"]
    assert discover_log_files(tmp_path / "missing") == []


def test_scan_builds_daily_totals_and_last_session(scanner: LogScanner, log_root: Path, tmp_path: Path) -> None:
    _write_lines(
        log_root / "one.jsonl",
        [
            _usage_line("2026-10-17T08:00:00Z", 10, 5, session_id="s1", model="gpt-5"),
            _usage_line("2026-10-18T08:00:00Z", 1, 1, session_id="s1", model="gpt-5"),
        ],
    )
    _write_lines(
        log_root / "nested" / "two.jsonl",
        [_usage_line("2026-10-18T09:00:00Z", 3, 4, session_id="s2", model="claude-opus")],
    )

    summary = scanner.scan([str(log_root), str(tmp_path / "missing")], today=TODAY)

    assert [day.day for day in summary.daily_totals] == [date(2026, 10, 17), TODAY]
    assert summary.get_day(date(2026, 10, 17)).total_tokens == 15
    assert summary.get_day(TODAY).total_tokens == 9
    assert summary.total_tokens == 24
    assert summary.records_parsed == 3
    assert summary.files_scanned == 2
    assert summary.scan_errors == ()
    assert summary.last_session is not None
    assert summary.last_session.session_id == "s2"
    assert summary.last_session.provider == ProviderIdentity.CLAUDE
    assert summary.last_session.total_tokens == 7


def test_daily_totals_cover_thirty_days(scanner: LogScanner, log_root: Path) -> None:
    _write_lines(
        log_root / "old.jsonl",
        [
            _usage_line("2026-09-18T12:00:00Z", 50, 50),
            _usage_line("2026-09-19T12:00:00Z", 1, 1),
        ],
    )

    summary = scanner.scan([str(log_root)], today=TODAY)

    assert [day.day for day in summary.daily_totals] == [date(2026, 9, 19)]
    assert summary.records_parsed == 2


def test_cache_survives_between_scanners(tmp_path: Path, log_root: Path) -> None:
    """A new scanner over the same cache file only reads new bytes but keeps totals."""
    cache_path = tmp_path / "state" / "scan-cache.json"
    path = _write_lines(log_root / "a.jsonl", [_usage_line("2026-10-18T01:00:00Z", 2, 2)])
    LogScanner(CacheStore(cache_path)).scan([str(log_root)], today=TODAY)

    cached = json.loads(cache_path.read_text(encoding="utf-8"))["files"][str(path)]
    assert cached["offset"] == path.stat().st_size
    assert cached["daily"] == {"2026-10-18": [2, 2, 4]}

    _write_lines(path, [_usage_line("2026-10-18T02:00:00Z", 3, 3)], mode="a")
    summary = LogScanner(CacheStore(cache_path)).scan([str(log_root)], today=TODAY)

    assert summary.get_day(TODAY).total_tokens == 10
    assert summary.records_parsed == 2


def test_deleted_files_drop_out_of_the_cache(scanner: LogScanner, log_root: Path) -> None:
    path = _write_lines(log_root / "a.jsonl", [_usage_line("2026-10-18T01:00:00Z", 2, 2)])
    scanner.scan([str(log_root)], today=TODAY)

    path.unlink()
    summary = scanner.scan([str(log_root)], today=TODAY)

    assert summary.daily_totals == ()
    assert scanner.cache_store.load().files == {}


def test_clearing_the_cache_rescans_from_the_start(scanner: LogScanner, log_root: Path) -> None:
    _write_lines(log_root / "a.jsonl", [_usage_line("2026-10-18T01:00:00Z", 2, 2)])
    scanner.scan([str(log_root)], today=TODAY)
    assert scanner.cache_store.path.exists()

    scanner.cache_store.clear()
    scanner.cache_store.clear()
    assert not scanner.cache_store.path.exists()
    summary = scanner.scan([str(log_root)], today=TODAY)

    assert summary.get_day(TODAY).total_tokens == 4
    assert summary.records_parsed == 1


@pytest.mark.parametrize("content", ["", "{broken", "[]", '{"files": {"x.jsonl": {"daily": {"nope": [1]}}}}'])
def test_unreadable_cache_starts_over(tmp_path: Path, content: str) -> None:
    path = tmp_path / "scan-cache.json"
    path.write_text(content, encoding="utf-8")

    assert CacheStore(path).load().files == {}


def test_scan_reports_unreadable_files(
    scanner: LogScanner, log_root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    good = _write_lines(log_root / "good.jsonl", [_usage_line("2026-10-18T01:00:00Z", 1, 1)])
    bad = _write_lines(log_root / "bad.jsonl", [_usage_line("2026-10-18T01:00:00Z", 5, 5)])

    real_open = open

    def failing_open(file, *args, **kwargs):
        if str(file) == str(bad):
            raise PermissionError("denied")
        return real_open(file, *args, **kwargs)

    monkeypatch.setattr("builtins.open", failing_open)
    summary = scanner.scan([str(log_root)], today=TODAY)

    assert summary.get_day(TODAY).total_tokens == 2
    assert summary.files_scanned == 1
    assert len(summary.scan_errors) == 1
    assert str(bad) in summary.scan_errors[0]
    assert str(good) not in summary.scan_errors[0]


# =============================================================================
# WATCHER
# =============================================================================


async def _wait_for(predicate, attempts: int = 150) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.02)


def test_watcher_refreshes_once_per_burst(log_root: Path) -> None:
    calls = 0

    async def on_change() -> None:
        nonlocal calls
        calls += 1

    async def run() -> bool:
        path = log_root / "a.jsonl"
        watcher = LogChangeWatcher([str(log_root)], on_change, poll_interval=0.02, debounce=0.1)
        await watcher.start()
        try:
            for index in range(3):
                _write_lines(path, [_usage_line("2026-10-18T01:00:00Z", index + 1, 1)], mode="a")
                await asyncio.sleep(0.01)
            await _wait_for(lambda: calls > 0)
            await asyncio.sleep(0.2)
            running = watcher.is_running
        finally:
            await watcher.stop()
        return running and not watcher.is_running

    assert asyncio.run(run())
    assert calls == 1


def test_watcher_survives_callback_errors(log_root: Path) -> None:
    calls = 0

    async def on_change() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("refresh failed")

    async def run() -> bool:
        path = log_root / "a.jsonl"
        watcher = LogChangeWatcher([str(log_root)], on_change, poll_interval=0.02, debounce=0.05)
        await watcher.start()
        try:
            _write_lines(path, ["{}"])
            await _wait_for(lambda: calls >= 1)
            _write_lines(path, ["{}", "{}"], mode="a")
            await _wait_for(lambda: calls >= 2)
            return watcher.is_running
        finally:
            await watcher.stop()

    assert asyncio.run(run())
    assert calls == 2
