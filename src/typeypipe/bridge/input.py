"""Local input loops: raw keystrokes or whole lines.

The bridge picks one variant at start-up and calls ``step()`` until it
returns False. Every step first gives the queue a chance to drain (at
most once per second), then waits briefly for local input and forwards
it to the shell.
"""

from __future__ import annotations

import asyncio
import logging
import os
import select
from typing import BinaryIO, Protocol, TextIO

from typeypipe.bridge.activity import ActivityTracker, DrainGate
from typeypipe.bridge.drain import QueueDrainer
from typeypipe.bridge.keys import InputDecoder, InputEvent, KeyEvent, key_bytes
from typeypipe.bridge.threads import run_in_daemon_thread
from typeypipe.exceptions import BridgeFatal
from typeypipe.pty.session import write_all

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 0.1
EOF_BACKOFF = 0.5
READ_CHUNK = 1024


class InputMode(Protocol):
    async def step(self) -> bool:
        """Run one iteration. Returns False once local input is finished."""
        ...


class _InputLoop:
    def __init__(
        self,
        writer: BinaryIO,
        activity: ActivityTracker,
        drainer: QueueDrainer | None = None,
        gate: DrainGate | None = None,
    ) -> None:
        self.writer = writer
        self.activity = activity
        self.drainer = drainer
        self.gate = gate or DrainGate()

    async def drain_if_due(self) -> None:
        if self.drainer is None or not self.gate.due():
            return
        outcome = await self.drainer.drain_next()
        logger.debug("Queue drain: %s", outcome.value)
        self.gate.rearm()

    def forward(self, data: bytes) -> None:
        try:
            write_all(self.writer, data)
            self.writer.flush()
        except (OSError, ValueError) as e:
            raise BridgeFatal(f"Failed to write to PTY: {e}") from e


class RawInput(_InputLoop):
    """Keystroke-at-a-time input from a terminal in raw mode."""

    def __init__(self, fd: int, writer: BinaryIO, activity: ActivityTracker, **kwargs) -> None:
        super().__init__(writer, activity, **kwargs)
        self.fd = fd
        self.decoder = InputDecoder()

    async def step(self) -> bool:
        await self.drain_if_due()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._poll_once)

    def _poll_once(self) -> bool:
        ready, _, _ = select.select([self.fd], [], [], POLL_TIMEOUT)
        if not ready:
            # A held-back escape prefix with nothing following is a key of its own.
            if self.decoder.has_pending:
                self._forward_events(self.decoder.flush())
            return True
        try:
            data = os.read(self.fd, READ_CHUNK)
        except OSError as e:
            raise BridgeFatal(f"Failed to read local input: {e}") from e
        if not data:
            self._forward_events(self.decoder.flush())
            return False

        self._forward_events(self.decoder.feed(data))
        return True

    def _forward_events(self, events: list[InputEvent]) -> None:
        for event in events:
            if isinstance(event, KeyEvent):
                self.activity.mark()
                self.forward(key_bytes(event))


class LineInput(_InputLoop):
    """Line-buffered input, for when raw mode is unavailable.

    End of input does not end the loop: the queue keeps being serviced,
    which is what a non-interactive host (stdin redirected or closed)
    relies on.
    """

    def __init__(self, stream: TextIO, writer: BinaryIO, activity: ActivityTracker, **kwargs) -> None:
        super().__init__(writer, activity, **kwargs)
        self.stream = stream
        self._pending: asyncio.Future | None = None
        self._eof = False

    async def step(self) -> bool:
        await self.drain_if_due()

        if self._eof:
            await asyncio.sleep(EOF_BACKOFF)
            return True

        if self._pending is None:
            self._pending = run_in_daemon_thread(self.stream.readline, name="typeypipe-stdin")
        done, _ = await asyncio.wait({self._pending}, timeout=POLL_TIMEOUT)
        if not done:
            return True

        pending, self._pending = self._pending, None
        try:
            line = pending.result()
        except (OSError, ValueError) as e:
            logger.warning("Local input failed: %s", e)
            return False

        if not line:
            logger.debug("Local input reached EOF; servicing queue only")
            self._eof = True
            return True

        self.activity.mark()
        self.forward(line if isinstance(line, bytes) else line.encode("utf-8"))
        return True
