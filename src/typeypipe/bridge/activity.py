"""Local typing activity and the gate that rate-limits queue drains."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class ActivityTracker:
    """Tracks the operator's last keystroke.

    The operator counts as typing for ``idle_timeout`` seconds after any
    local input. ``pause_logged`` is the sticky flag the drain step uses
    to log pause/resume transitions once each.
    """

    idle_timeout: float
    clock: Callable[[], float] = time.monotonic
    last_input: float | None = field(default=None, init=False)
    pause_logged: bool = field(default=False, init=False)

    def mark(self) -> None:
        """Record local input now."""
        self.last_input = self.clock()

    def is_typing(self) -> bool:
        if self.last_input is None:
            return False
        return self.clock() - self.last_input < self.idle_timeout


@dataclass
class DrainGate:
    """Opens at most once per ``interval`` seconds."""

    interval: float = 1.0
    clock: Callable[[], float] = time.monotonic
    _last: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        self._last = self.clock()

    def due(self) -> bool:
        """True (and re-arms) when ``interval`` has passed since the last opening."""
        now = self.clock()
        if now - self._last >= self.interval:
            self._last = now
            return True
        return False

    def rearm(self) -> None:
        """Restart the interval from now, e.g. after a slow drain."""
        self._last = self.clock()
