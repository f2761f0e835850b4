"""Interactive bridge: the operator's terminal wired to the shell.

The bridge takes the session's PTY handles for itself and runs:

* a relay thread copying shell output to local stdout;
* one input loop (raw keystrokes, or lines when raw mode is unavailable)
  forwarding local input to the shell and draining the command queue
  whenever the operator has been idle long enough.

Whichever finishes first (the relay at shell exit, the input loop, or
SIGINT/SIGTERM) ends the bridge. On every path out the local terminal
leaves raw mode and the bridge closes its PTY handles.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
import sys
from pathlib import Path
from typing import BinaryIO, TextIO

from typeypipe.audit import AuditLog
from typeypipe.bridge.activity import ActivityTracker, DrainGate
from typeypipe.bridge.drain import QueueDrainer
from typeypipe.bridge.input import InputMode, LineInput, RawInput
from typeypipe.bridge.terminal import LocalTerminal
from typeypipe.bridge.threads import run_in_daemon_thread
from typeypipe.exceptions import BridgeFatal, SessionIOError
from typeypipe.pty.session import BridgeHandles
from typeypipe.pty.shared import SharedSession

logger = logging.getLogger(__name__)

RELAY_CHUNK = 1024


class BridgeExit(enum.Enum):
    """Why the bridge stopped."""

    INTERRUPTED = "interrupted"
    SHELL_EXITED = "shell_exited"
    INPUT_CLOSED = "input_closed"


class InteractiveBridge:
    """Relays a shared PTY session to the local terminal.

    Args:
        session: The session to drive. Its read/write handles are taken
            for good once ``run()`` starts.
        queue_dir: Directory polled for queued commands. Draining needs
            both this and ``log_file``.
        log_file: Audit log for queue activity.
        idle_timeout: Seconds after local input before the queue resumes.
        terminal: Local terminal (defaults to the one behind stdin).
        stdin: Line source used when raw mode cannot be enabled.
        stdout: Binary sink for shell output.
        handle_signals: Install SIGINT/SIGTERM/SIGWINCH handlers.
    """

    def __init__(
        self,
        session: SharedSession,
        queue_dir: Path | str | None = None,
        log_file: Path | str | None = None,
        idle_timeout: float = 30,
        *,
        terminal: LocalTerminal | None = None,
        stdin: TextIO | None = None,
        stdout: BinaryIO | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.session = session
        self.queue_dir = Path(queue_dir) if queue_dir is not None else None
        self.log_file = Path(log_file) if log_file is not None else None
        self.activity = ActivityTracker(idle_timeout=idle_timeout)
        self.terminal = terminal or LocalTerminal(stdin)
        self.stdin = stdin
        self.stdout = stdout
        self.handle_signals = handle_signals
        self.mode: InputMode | None = None
        self._background: set[asyncio.Task] = set()
        self._stopping = False

    async def run(self) -> BridgeExit:
        """Bridge until the shell exits, input ends or a signal arrives.

        Raises BridgeFatal if the input loop fails.
        """
        handles = await self.session.into_bridge_handles()
        raw = self.terminal.enable_raw_mode()
        logger.info("Bridge started (%s mode)", "raw" if raw else "line")
        try:
            self.mode = self._select_mode(raw, handles)
            return await self._serve(handles)
        finally:
            if raw:
                self.terminal.disable_raw_mode()
            self._stopping = True
            handles.close()

    def _select_mode(self, raw: bool, handles: BridgeHandles) -> InputMode:
        drainer = None
        if self.queue_dir is not None and self.log_file is not None:
            drainer = QueueDrainer(
                self.queue_dir, AuditLog(self.log_file), handles.writer, self.activity
            )
        kwargs = {"drainer": drainer, "gate": DrainGate()}
        if raw:
            return RawInput(self.terminal.fd, handles.writer, self.activity, **kwargs)
        return LineInput(self.stdin or sys.stdin, handles.writer, self.activity, **kwargs)

    async def _serve(self, handles: BridgeHandles) -> BridgeExit:
        loop = asyncio.get_running_loop()
        interrupted = asyncio.Event()
        installed = self._install_signal_handlers(loop, interrupted)

        relay = run_in_daemon_thread(self._relay, handles.reader_fd, name="typeypipe-relay")
        input_task = asyncio.create_task(self._input_loop())
        interrupt_task = asyncio.create_task(interrupted.wait())

        try:
            done, _ = await asyncio.wait(
                {relay, input_task, interrupt_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            input_task.cancel()
            interrupt_task.cancel()
            await asyncio.gather(input_task, interrupt_task, return_exceptions=True)

        if input_task in done and not input_task.cancelled():
            exc = input_task.exception()
            if isinstance(exc, BridgeFatal):
                raise exc
            if exc is not None:
                raise BridgeFatal(f"Input loop failed: {exc}") from exc
            logger.info("Local input closed")
            return BridgeExit.INPUT_CLOSED

        if relay in done:
            exc = relay.exception()
            if exc is not None:
                logger.warning("Output relay stopped: %s", exc)
            logger.info("Shell output ended")
            return BridgeExit.SHELL_EXITED

        logger.info("Bridge interrupted")
        return BridgeExit.INTERRUPTED

    async def _input_loop(self) -> None:
        assert self.mode is not None
        while await self.mode.step():
            pass

    def _relay(self, reader_fd: int) -> None:
        out = self.stdout if self.stdout is not None else sys.stdout.buffer
        while not self._stopping:
            try:
                data = os.read(reader_fd, RELAY_CHUNK)
            except OSError as e:
                logger.debug("PTY read ended: %s", e)
                return
            if not data:
                return
            out.write(data)
            out.flush()

    def _install_signal_handlers(
        self, loop: asyncio.AbstractEventLoop, interrupted: asyncio.Event
    ) -> list[signal.Signals]:
        if not self.handle_signals:
            return []
        handlers = {
            signal.SIGINT: interrupted.set,
            signal.SIGTERM: interrupted.set,
            signal.SIGWINCH: self._on_winch,
        }
        installed = []
        for sig, handler in handlers.items():
            try:
                loop.add_signal_handler(sig, handler)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug("Cannot handle %s: %s", sig.name, e)
                continue
            installed.append(sig)
        return installed

    def _on_winch(self) -> None:
        size = self.terminal.size()
        if size is None:
            return
        task = asyncio.create_task(self._apply_size(*size))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _apply_size(self, rows: int, cols: int) -> None:
        try:
            await self.session.resize(rows, cols)
        except SessionIOError as e:
            logger.warning("Failed to resize PTY to %dx%d: %s", cols, rows, e)


async def run_interactive(
    session: SharedSession,
    queue_dir: Path | str | None = None,
    log_file: Path | str | None = None,
    idle_timeout: float = 30,
) -> BridgeExit:
    """Run an ``InteractiveBridge`` on the process's own terminal."""
    bridge = InteractiveBridge(session, queue_dir, log_file, idle_timeout)
    return await bridge.run()
