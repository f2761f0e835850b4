"""Audit log: append-only, timestamped record of queue activity.

Each entry is written as ``[YYYY-MM-DD HH:MM:SS UTC] <message>`` followed
by a newline. Messages may span several lines (the injected command is
logged under its header line). The file is opened per entry so external
tools can rotate or tail it freely.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import aiofiles

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def format_entry(message: str, now: datetime | None = None) -> str:
    """Render one log entry, newline-terminated."""
    now = now or datetime.now(timezone.utc)
    return f"[{now.strftime(TIMESTAMP_FORMAT)}] {message}\n"


class AuditLog:
    """Appends UTF-8 entries to a log file, creating it if absent."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    async def write(self, message: str) -> None:
        """Append one entry and flush it. Raises OSError on failure."""
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(format_entry(message))
            await f.flush()

    async def write_quietly(self, message: str) -> None:
        """Append one entry; failures go to the diagnostic log only."""
        try:
            await self.write(message)
        except OSError as e:
            logger.warning("Cannot write audit log %s: %s", self.path, e)

    def __repr__(self) -> str:
        return f"AuditLog({str(self.path)!r})"
