"""typeypipe exception hierarchy."""

from __future__ import annotations


class TypeyPipeError(Exception):
    """Base exception for all typeypipe errors."""


class ConfigError(TypeyPipeError):
    """Raised when the configuration is invalid or cannot be read."""


class ResourceError(TypeyPipeError):
    """Raised when a pseudoterminal cannot be allocated or the shell cannot be spawned."""


class SessionIOError(TypeyPipeError, OSError):
    """Raised when reading, writing or resizing a PTY session fails."""


class SessionDetachedError(SessionIOError):
    """Raised when a session is used after its handles were handed to a bridge."""


class QueueError(TypeyPipeError):
    """Raised when the queue directory cannot be scanned."""


class RetryExhaustedError(TypeyPipeError):
    """Raised when a transient failure persists through every retry attempt."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


class UnsupportedKeyError(TypeyPipeError):
    """Raised when a key event has no native terminal encoding."""


class BridgeFatal(TypeyPipeError):
    """Raised when the interactive bridge cannot continue."""
