"""Blocking calls on daemon threads, awaited from asyncio."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any


def run_in_daemon_thread(fn: Callable[..., Any], *args: Any, name: str | None = None) -> asyncio.Future:
    """Run ``fn(*args)`` on a fresh daemon thread and return a future for it.

    Unlike the default executor, a call that never returns (a read on a
    pipe nobody closes) does not hold up interpreter or event loop
    shutdown; it is simply abandoned.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _deliver(setter: Callable[[Any], None], value: Any) -> None:
        if not future.done():
            setter(value)

    def _target() -> None:
        try:
            result = fn(*args)
        except Exception as e:
            setter, value = future.set_exception, e
        else:
            setter, value = future.set_result, result
        try:
            loop.call_soon_threadsafe(_deliver, setter, value)
        except RuntimeError:
            # Event loop already closed; the result has no reader.
            pass

    threading.Thread(target=_target, name=name, daemon=True).start()
    return future
