"""PTY session: one shell process behind an OS pseudoterminal."""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import pty
import select
import signal
import struct
import subprocess
import termios
import uuid
from dataclasses import dataclass, field
from typing import BinaryIO

from typeypipe.exceptions import ResourceError, SessionDetachedError, SessionIOError

logger = logging.getLogger(__name__)

READ_CHUNK = 4096
NO_OUTPUT = "No output available"


def set_winsize(fd: int, rows: int, cols: int) -> None:
    """Apply a terminal size to a pty fd."""
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def write_all(writer: BinaryIO, data: bytes) -> None:
    """Write every byte of ``data`` to an unbuffered writer.

    Raises BlockingIOError if the writer would block before finishing.
    """
    view = memoryview(data)
    while view:
        n = writer.write(view)
        if n is None:
            raise BlockingIOError(errno.EAGAIN, "PTY writer would block")
        view = view[n:]


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(); stdin is already the pty slave.
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


@dataclass
class BridgeHandles:
    """Exclusive read/write access to a session, owned by one bridge."""

    reader_fd: int
    writer: BinaryIO
    closed: bool = field(default=False, init=False)

    def close(self) -> None:
        """Release both handles. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        for closer in (self.writer.close, lambda: os.close(self.reader_fd)):
            try:
                closer()
            except OSError:
                pass


@dataclass
class PtySession:
    """A shell running in a pseudoterminal.

    The session keeps an unbuffered write handle over the pty master until a
    bridge takes it with ``into_bridge_handles()``. From then on the
    session only answers size and liveness queries; ``send_input`` and
    ``available_output`` raise ``SessionDetachedError``.

    Use ``PtySession.create()`` to build one.
    """

    shell_path: str
    cols: int
    rows: int
    id: str = field(default_factory=lambda: f"tp-{uuid.uuid4().hex[:8]}")
    read_timeout: float = 0.2

    _master_fd: int = field(default=-1, init=False, repr=False)
    _writer: BinaryIO | None = field(default=None, init=False, repr=False)
    _proc: subprocess.Popen | None = field(default=None, init=False, repr=False)
    _detached: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)

    @classmethod
    def create(cls, shell_path: str, cols: int, rows: int) -> PtySession:
        """Allocate a pty sized to (cols, rows) and spawn the shell in it."""
        session = cls(shell_path=shell_path, cols=cols, rows=rows)
        session._spawn()
        return session

    def _spawn(self) -> None:
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise ResourceError(f"Failed to create PTY pair: {e}") from e

        env = dict(os.environ)
        env["TERM"] = "xterm-256color"

        try:
            set_winsize(slave_fd, self.rows, self.cols)
            self._proc = subprocess.Popen(
                [self.shell_path],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
                env=env,
                close_fds=True,
            )
            self._writer = os.fdopen(os.dup(master_fd), "wb", buffering=0)
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise ResourceError(f"Failed to spawn shell in PTY: {e}") from e
        finally:
            os.close(slave_fd)

        self._master_fd = master_fd
        logger.info(
            "PTY session %s started: pid=%d shell=%s size=%dx%d",
            self.id,
            self._proc.pid,
            self.shell_path,
            self.cols,
            self.rows,
        )

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def detached(self) -> bool:
        return self._detached

    def send_input(self, text: str) -> None:
        """Write raw text to the shell."""
        if self._writer is None:
            raise SessionDetachedError(f"PTY session {self.id} is detached")
        try:
            write_all(self._writer, text.encode("utf-8"))
        except OSError as e:
            raise SessionIOError(f"Failed to write input to PTY: {e}") from e

    def available_output(self) -> str:
        """Read whatever output is ready, at most 4096 bytes.

        Returns ``NO_OUTPUT`` when nothing arrives within ``read_timeout``
        or when the read fails.
        """
        if self._detached:
            raise SessionDetachedError(f"PTY session {self.id} is detached")
        try:
            fd = os.dup(self._master_fd)
        except OSError:
            return NO_OUTPUT
        try:
            ready, _, _ = select.select([fd], [], [], self.read_timeout)
            if not ready:
                return NO_OUTPUT
            data = os.read(fd, READ_CHUNK)
        except OSError as e:
            logger.debug("PTY read on %s failed: %s", self.id, e)
            return NO_OUTPUT
        finally:
            os.close(fd)
        return data.decode("utf-8", errors="replace")

    def resize(self, rows: int, cols: int) -> None:
        try:
            set_winsize(self._master_fd, rows, cols)
        except OSError as e:
            raise SessionIOError(f"Failed to resize PTY: {e}") from e
        self.rows, self.cols = rows, cols

    def is_alive(self) -> bool:
        if self._closed or self._proc is None:
            return False
        return self._proc.poll() is None

    def take_write_handle(self) -> BinaryIO:
        """Transfer ownership of the write handle. Works exactly once."""
        if self._writer is None:
            raise SessionDetachedError(f"PTY writer of {self.id} was already taken")
        writer, self._writer = self._writer, None
        return writer

    def clone_read_handle(self) -> int:
        """Return a new fd reading from the pty master."""
        try:
            return os.dup(self._master_fd)
        except OSError as e:
            raise SessionIOError(f"Failed to clone PTY reader: {e}") from e

    def into_bridge_handles(self) -> BridgeHandles:
        """Hand exclusive read/write access over to a bridge."""
        reader_fd = self.clone_read_handle()
        try:
            writer = self.take_write_handle()
        except SessionDetachedError:
            os.close(reader_fd)
            raise
        self._detached = True
        logger.debug("PTY session %s handed off to bridge", self.id)
        return BridgeHandles(reader_fd=reader_fd, writer=writer)

    def close(self) -> None:
        """Kill the shell's process group and release the pty. Never raises."""
        if self._closed:
            return
        self._closed = True

        if self._proc is not None and self._proc.poll() is None:
            try:
                os.killpg(self._proc.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                try:
                    self._proc.kill()
                except OSError:
                    pass
            try:
                # Reap if already gone; never block.
                self._proc.poll()
            except OSError:
                pass

        if self._writer is not None:
            try:
                self._writer.close()
            except OSError:
                pass
            self._writer = None

        if self._master_fd >= 0:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = -1

        logger.info("PTY session %s closed", self.id)

    def __del__(self) -> None:
        if not self._closed and self._proc is not None:
            self.close()
