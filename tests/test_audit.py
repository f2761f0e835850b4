"""Tests for typeypipe.audit (AuditLog, format_entry)."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

from typeypipe.audit import AuditLog, format_entry

_ENTRY_RE = re.compile(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} UTC\] (.*)")


class TestFormatEntry:
    def test_fixed_time(self) -> None:
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_entry("hello", now) == "[2024-01-02 03:04:05 UTC] hello\n"

    def test_default_time_is_well_formed(self) -> None:
        entry = format_entry("x")
        assert entry.endswith("\n")
        assert _ENTRY_RE.fullmatch(entry.rstrip("\n"))


class TestAuditLog:
    async def test_write_creates_file(self, tmp_path: Path) -> None:
        path = tmp_path / "queue.log"
        log = AuditLog(path)
        await log.write("hello world")
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        match = _ENTRY_RE.fullmatch(lines[0])
        assert match is not None
        assert match.group(1) == "hello world"

    async def test_appends(self, tmp_path: Path) -> None:
        path = tmp_path / "queue.log"
        path.write_text("existing\n", encoding="utf-8")
        log = AuditLog(path)
        await log.write("first")
        await log.write("second")
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "existing"
        assert lines[1].endswith("] first")
        assert lines[2].endswith("] second")

    async def test_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "queue.log"
        await AuditLog(path).write("⏸️ paused")
        assert "⏸️ paused" in path.read_text(encoding="utf-8")

    async def test_write_quietly_ignores_missing_dir(self, tmp_path: Path) -> None:
        path = tmp_path / "missing" / "queue.log"
        await AuditLog(path).write_quietly("lost")
        assert not path.exists()
