"""Local controlling terminal: raw mode and window size."""

from __future__ import annotations

import logging
import os
import sys
import termios
import tty
from typing import Any, TextIO

logger = logging.getLogger(__name__)


class LocalTerminal:
    """The operator's terminal, reached through a stdin stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stdin
        self._saved: list[Any] | None = None

    @property
    def fd(self) -> int:
        return self.stream.fileno()

    @property
    def raw_enabled(self) -> bool:
        return self._saved is not None

    def enable_raw_mode(self) -> bool:
        """Switch to raw (unbuffered, unechoed) input.

        Returns False, leaving the terminal untouched, when the stream is
        not a terminal or its attributes cannot be changed.
        """
        try:
            fd = self.fd
        except (AttributeError, OSError, ValueError):
            return False
        if not os.isatty(fd):
            return False
        try:
            saved = termios.tcgetattr(fd)
            tty.setraw(fd)
        except termios.error as e:
            logger.debug("Raw mode unavailable: %s", e)
            return False
        self._saved = saved
        return True

    def disable_raw_mode(self) -> None:
        """Restore the attributes saved by ``enable_raw_mode``."""
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)

    def size(self) -> tuple[int, int] | None:
        """(rows, cols) of the terminal, or None if unknown."""
        try:
            size = os.get_terminal_size(self.fd)
        except (AttributeError, OSError, ValueError):
            return None
        return size.lines, size.columns
