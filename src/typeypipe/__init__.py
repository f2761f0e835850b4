"""typeypipe: drive a live interactive shell from a file-based command queue."""

from typeypipe.bridge import BridgeExit, InteractiveBridge, run_interactive
from typeypipe.config import ShellConfig, TypeyPipeConfig
from typeypipe.pty import CommandResult, PtySession, SessionManager, SharedSession, create_session
from typeypipe.queue import QueueProcessor, enqueue_command

__version__ = "0.1.0"

__all__ = [
    "BridgeExit",
    "CommandResult",
    "InteractiveBridge",
    "PtySession",
    "QueueProcessor",
    "SessionManager",
    "SharedSession",
    "ShellConfig",
    "TypeyPipeConfig",
    "create_session",
    "enqueue_command",
    "run_interactive",
]
