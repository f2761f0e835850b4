"""Session manager: async convenience layer over a SharedSession."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from typeypipe.config import ShellConfig
from typeypipe.exceptions import SessionIOError
from typeypipe.pty.shared import SharedSession, create_session

logger = logging.getLogger(__name__)

SETTLE_DELAY = 0.2
EXECUTED_PLACEHOLDER = "Command executed"


@dataclass
class CommandResult:
    """Outcome of sending one command to the shell."""

    output: str
    success: bool


class SessionManager:
    """Programmatic, non-interactive control of one shell session.

    Keeps the session id and dimensions cached so callers can look them up
    without contending for the session lock.

    Usage:
        manager = await SessionManager.create(ShellConfig())
        await manager.write_line("ls -la")
        output = await manager.available_output()
        result = await manager.run_command_and_wait("echo hello")
    """

    def __init__(self, shared: SharedSession, session_id: str, cols: int, rows: int) -> None:
        self.shared = shared
        self._session_id = session_id
        self.cols = cols
        self.rows = rows

    @classmethod
    async def create(cls, config: ShellConfig) -> SessionManager:
        shared = await create_session(config)
        session_id = await shared.session_id()
        return cls(shared, session_id, config.cols, config.rows)

    @property
    def session_id(self) -> str:
        return self._session_id

    async def send_input(self, text: str) -> None:
        """Send raw input; callers add newlines as needed."""
        await self.shared.send_input(text)

    async def write_line(self, text: str) -> None:
        await self.send_input(f"{text}\n")

    async def available_output(self) -> str:
        return await self.shared.available_output()

    async def run_command_and_wait(self, command: str) -> CommandResult:
        """Send ``command``, let it settle briefly and collect some output.

        Success is always reported: the shell's exit status is not
        captured, so a failing command looks the same as a passing one.
        """
        await self.send_input(f"{command}\n")
        await asyncio.sleep(SETTLE_DELAY)

        try:
            output = await self.available_output()
        except SessionIOError as e:
            logger.debug("Output read after %r failed: %s", command, e)
            output = EXECUTED_PLACEHOLDER

        return CommandResult(output=output, success=True)

    async def resize(self, rows: int, cols: int) -> None:
        await self.shared.resize(rows, cols)
        self.rows, self.cols = rows, cols

    async def close(self) -> None:
        await self.shared.close()
