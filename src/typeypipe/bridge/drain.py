"""Queue drain step: injects the oldest queued command into the shell.

Called from the bridge's input loop at most once per second. Each call
injects at most one command, and only while the operator is idle. The
command is followed by a carriage return, the byte a physical Enter key
sends, so the shell sees it exactly as if it had been typed.

Whatever happens to the write, the queue file is removed once its outcome
is final: a command is never injected twice.
"""

from __future__ import annotations

import enum
import errno
import logging
from pathlib import Path
from typing import BinaryIO

from typeypipe.audit import AuditLog
from typeypipe.bridge.activity import ActivityTracker
from typeypipe.bridge.retry import MAX_ATTEMPTS, RETRY_DELAY, retry_transient
from typeypipe.exceptions import RetryExhaustedError
from typeypipe.queue.files import QueueFile, oldest_queue_file, read_command

logger = logging.getLogger(__name__)


class _ResumableWrite:
    """One payload written across retries, resuming after the bytes already sent."""

    def __init__(self, writer: BinaryIO, payload: bytes) -> None:
        self.writer = writer
        self.remaining = memoryview(payload)

    def __call__(self) -> None:
        while self.remaining:
            try:
                n = self.writer.write(self.remaining)
            except BlockingIOError as e:
                self.remaining = self.remaining[getattr(e, "characters_written", 0) :]
                raise
            if n is None:
                raise BlockingIOError(errno.EAGAIN, "PTY writer would block")
            self.remaining = self.remaining[n:]


class DrainOutcome(enum.Enum):
    PAUSED = "paused"
    EMPTY = "empty"
    INJECTED = "injected"
    GAVE_UP = "gave_up"
    FAILED = "failed"
    UNREADABLE = "unreadable"


class QueueDrainer:
    """Moves queued commands onto the bridge's PTY write handle."""

    def __init__(
        self,
        queue_dir: Path | str,
        audit: AuditLog,
        writer: BinaryIO,
        activity: ActivityTracker,
        *,
        attempts: int = MAX_ATTEMPTS,
        delay: float = RETRY_DELAY,
    ) -> None:
        self.queue_dir = Path(queue_dir)
        self.audit = audit
        self.writer = writer
        self.activity = activity
        self.attempts = attempts
        self.delay = delay

    async def drain_next(self) -> DrainOutcome:
        if await self._paused():
            return DrainOutcome.PAUSED

        try:
            item = oldest_queue_file(self.queue_dir)
        except OSError as e:
            logger.debug("Cannot scan queue %s: %s", self.queue_dir, e)
            return DrainOutcome.EMPTY
        if item is None:
            return DrainOutcome.EMPTY

        try:
            command = read_command(item.path)
        except (OSError, UnicodeDecodeError) as e:
            await self.audit.write_quietly(f"❌ Cannot read queue file: {item.name}\nError: {e}")
            self._remove(item)
            return DrainOutcome.UNREADABLE

        await self.audit.write_quietly(f"🔄 Processing: {item.name}\n{command}")

        payload = f"{command}\r".encode("utf-8")
        outcome = await self._attempt(
            item, command, _ResumableWrite(self.writer, payload), "retries", "inject command from"
        )
        if outcome is None:
            outcome = await self._attempt(
                item, command, self.writer.flush, "flush retries", "flush PTY writer for"
            )
        if outcome is None:
            outcome = DrainOutcome.INJECTED
            logger.debug("Injected %s: %r", item.name, command)

        self._remove(item)
        return outcome

    async def _paused(self) -> bool:
        """Apply idle arbitration, logging each pause/resume transition once."""
        if self.activity.is_typing():
            if not self.activity.pause_logged:
                await self.audit.write_quietly("⏸️ Queue processing paused - user is typing")
                self.activity.pause_logged = True
            return True

        if self.activity.pause_logged:
            await self.audit.write_quietly(
                "▶️ Queue processing resumed - user input timeout expired"
            )
            self.activity.pause_logged = False
        return False

    async def _attempt(
        self, item: QueueFile, command: str, operation, retry_label: str, failure_label: str
    ) -> DrainOutcome | None:
        """Run one retried PTY operation. Returns None on success."""
        try:
            await retry_transient(operation, attempts=self.attempts, delay=self.delay)
        except RetryExhaustedError as e:
            await self.audit.write_quietly(
                f"❌ Gave up after {e.attempts} {retry_label} for: {item.name} ({e.last_error})\n"
                f"Command was:\n{command}"
            )
            return DrainOutcome.GAVE_UP
        except (OSError, ValueError) as e:
            await self.audit.write_quietly(
                f"❌ Failed to {failure_label}: {item.name}\nError: {e}\nCommand was:\n{command}"
            )
            return DrainOutcome.FAILED
        return None

    def _remove(self, item: QueueFile) -> None:
        try:
            item.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove queue file %s: %s", item.path, e)
