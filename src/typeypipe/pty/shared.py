"""Shared session: serialized async access to one PtySession.

The queue processor, the session manager and the bridge set-up all reach
the same shell. Each operation here takes the lock for the duration of a
short synchronous call on the session; there is no timeout on acquiring
it, so nothing slow may run while it is held.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from typeypipe.config import ShellConfig
from typeypipe.pty.session import BridgeHandles, PtySession

logger = logging.getLogger(__name__)


class SharedSession:
    """A PtySession that many coroutines may hold at once."""

    def __init__(self, session: PtySession) -> None:
        self._session = session
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[PtySession]:
        """Exclusive access to the underlying session."""
        async with self._lock:
            yield self._session

    async def session_id(self) -> str:
        async with self.acquire() as session:
            return session.id

    async def send_input(self, text: str) -> None:
        async with self.acquire() as session:
            session.send_input(text)

    async def available_output(self) -> str:
        async with self.acquire() as session:
            return session.available_output()

    async def resize(self, rows: int, cols: int) -> None:
        async with self.acquire() as session:
            session.resize(rows, cols)

    async def is_alive(self) -> bool:
        async with self.acquire() as session:
            return session.is_alive()

    async def into_bridge_handles(self) -> BridgeHandles:
        """Take the session's read/write handles for exclusive bridge use."""
        async with self.acquire() as session:
            return session.into_bridge_handles()

    async def close(self) -> None:
        async with self.acquire() as session:
            session.close()


async def create_session(config: ShellConfig) -> SharedSession:
    """Spawn a shell per ``config`` and wrap it for shared use."""
    session = PtySession.create(config.shell_path, config.cols, config.rows)
    return SharedSession(session)
