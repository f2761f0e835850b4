"""Bounded, fixed-delay retry for PTY writes and flushes."""

from __future__ import annotations

import errno
import logging
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from typeypipe.exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 50
RETRY_DELAY = 1.0

_TRANSIENT_ERRNOS = {errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR}


def is_transient(exc: BaseException) -> bool:
    """True for "would block" and "interrupted" I/O failures."""
    if isinstance(exc, (BlockingIOError, InterruptedError)):
        return True
    return isinstance(exc, OSError) and exc.errno in _TRANSIENT_ERRNOS


async def retry_transient(
    operation: Callable[[], T],
    *,
    attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY,
) -> T:
    """Run ``operation`` until it succeeds or stops being worth retrying.

    Transient failures are retried after ``delay`` seconds, up to
    ``attempts`` calls in total; exhausting them raises
    ``RetryExhaustedError``. Any other exception propagates at once.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(delay),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
        ):
            with attempt:
                return operation()
    except RetryError as e:
        raise RetryExhaustedError(attempts, e.last_attempt.exception()) from e
    raise AssertionError("unreachable")  # pragma: no cover
