"""PTY sessions: the shell behind the bridge.

A ``PtySession`` owns the pseudoterminal and the shell process. A
``SharedSession`` serializes access to it across coroutines, and
``SessionManager`` adds command-and-wait conveniences for programmatic
callers.
"""

from typeypipe.pty.session import NO_OUTPUT, BridgeHandles, PtySession
from typeypipe.pty.shared import SharedSession, create_session
from typeypipe.pty.manager import CommandResult, SessionManager

__all__ = [
    "NO_OUTPUT",
    "BridgeHandles",
    "CommandResult",
    "PtySession",
    "SessionManager",
    "SharedSession",
    "create_session",
]
