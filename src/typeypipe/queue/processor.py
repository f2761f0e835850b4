"""Batch queue processor: drains every pending file per pass.

External processes send commands to a running shell by writing a file
and moving it into the queue directory:

    echo "ls -la" > temp_cmd
    mv temp_cmd .tp/myqueue/

Each file's trimmed content is sent to the shell followed by a newline.
Files are removed once sent; a file that cannot be read or sent stays in
place for the next pass. Every step is recorded in the audit log.

This is the standalone, non-interactive path. The interactive bridge has
its own one-command-per-second drain in ``typeypipe.bridge.drain``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from typeypipe.audit import AuditLog
from typeypipe.exceptions import QueueError, SessionIOError
from typeypipe.pty.manager import CommandResult
from typeypipe.pty.shared import SharedSession
from typeypipe.queue.files import read_command, scan_queue

logger = logging.getLogger(__name__)


class QueueProcessor:
    """Feeds queue files into a shared PTY session."""

    def __init__(self, session: SharedSession, queue_dir: Path | str, log_file: Path | str) -> None:
        self.session = session
        self.queue_dir = Path(queue_dir)
        self.audit = AuditLog(log_file)

    async def drain_once(self) -> dict[str, CommandResult]:
        """Process every file currently in the queue, oldest first.

        Returns one result per file visited, keyed by filename.
        """
        try:
            files = scan_queue(self.queue_dir)
        except OSError as e:
            raise QueueError(f"Failed to read queue directory {self.queue_dir}: {e}") from e

        results: dict[str, CommandResult] = {}
        for item in files:
            filename = item.name

            try:
                command = read_command(item.path)
            except (OSError, UnicodeDecodeError) as e:
                await self.log_message(f"❌ Error reading queue file {filename}: {e}")
                results[filename] = CommandResult(output=f"Error: {e}", success=False)
                continue

            await self.log_message(f"🔄 Processing queue file: {filename} -> {command}")

            try:
                await self.session.send_input(f"{command}\n")
            except SessionIOError as e:
                await self.log_message(f"❌ Error processing {filename}: {e}")
                results[filename] = CommandResult(output=f"Error: {e}", success=False)
                continue

            results[filename] = CommandResult(output="Command sent to shell", success=True)

            try:
                item.path.unlink()
            except OSError as e:
                await self.log_message(
                    f"⚠️  Warning: Failed to remove queue file {filename}: {e}"
                )
            else:
                await self.log_message(f"✅ Completed and removed: {filename}")

        return results

    async def run_forever(self, interval_ms: int) -> None:
        """Drain the queue on a fixed tick. Never returns on its own."""
        await self.log_message(f"🚀 Starting PTY queue processor (interval: {interval_ms}ms)")
        await self.log_message(f"📁 Queue directory: {self.queue_dir}")

        interval = interval_ms / 1000
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while True:
            try:
                results = await self.drain_once()
            except QueueError as e:
                await self.log_message(f"❌ Queue processing error: {e}")
            else:
                if results:
                    await self.log_message(f"📊 Processed {len(results)} queue items")

            next_tick += interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    async def log_message(self, text: str) -> None:
        await self.audit.write_quietly(text)
