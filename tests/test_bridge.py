"""Tests for typeypipe.bridge.core.InteractiveBridge, wired to pipes."""

from __future__ import annotations

import asyncio
import io
import os
import select
import signal
import threading
import time
from pathlib import Path

import pytest

from typeypipe.bridge.core import BridgeExit, InteractiveBridge
from typeypipe.config import ShellConfig
from typeypipe.exceptions import BridgeFatal
from typeypipe.pty.session import BridgeHandles
from typeypipe.pty.shared import SharedSession, create_session


class FakeShared:
    """Hands out pipe-backed handles in place of a PTY."""

    def __init__(self, handles: BridgeHandles) -> None:
        self.handles = handles
        self.taken = 0
        self.resized: list[tuple[int, int]] = []

    async def into_bridge_handles(self) -> BridgeHandles:
        self.taken += 1
        return self.handles

    async def resize(self, rows: int, cols: int) -> None:
        self.resized.append((rows, cols))


class FakeTerminal:
    def __init__(self, raw: bool = False, fd: int = -1) -> None:
        self.raw = raw
        self._fd = fd
        self.enabled = False
        self.restored = False

    @property
    def fd(self) -> int:
        return self._fd

    def enable_raw_mode(self) -> bool:
        self.enabled = self.raw
        return self.raw

    def disable_raw_mode(self) -> None:
        self.restored = True

    def size(self) -> tuple[int, int] | None:
        return (40, 100)


class BrokenWriter:
    def write(self, data: bytes) -> int:
        raise OSError(5, "Input/output error")

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class LockedBytesIO(io.BytesIO):
    """BytesIO safe to write from the relay thread and read from the test."""

    def __init__(self) -> None:
        super().__init__()
        self.lock = threading.Lock()

    def write(self, data) -> int:
        with self.lock:
            return super().write(data)

    def snapshot(self) -> bytes:
        with self.lock:
            return self.getvalue()


class Pipes:
    """Stand-in shell: output flows shell_out_w -> bridge, input bridge -> shell_in_r."""

    def __init__(self, writer=None) -> None:
        self.shell_out_r, self.shell_out_w = os.pipe()
        self.shell_in_r, shell_in_w = os.pipe()
        self.writer = writer if writer is not None else os.fdopen(shell_in_w, "wb", buffering=0)
        if writer is not None:
            os.close(shell_in_w)
        self.handles = BridgeHandles(reader_fd=self.shell_out_r, writer=self.writer)

    def end_shell(self) -> None:
        if self.shell_out_w >= 0:
            os.close(self.shell_out_w)
            self.shell_out_w = -1

    def read_input(self, needle: bytes, timeout: float = 5.0) -> bytes:
        deadline = time.monotonic() + timeout
        seen = b""
        while needle not in seen and time.monotonic() < deadline:
            ready, _, _ = select.select([self.shell_in_r], [], [], 0.05)
            if ready:
                seen += os.read(self.shell_in_r, 1024)
        return seen

    def close(self) -> None:
        self.end_shell()
        self.handles.close()
        os.close(self.shell_in_r)


@pytest.fixture
def pipes():
    p = Pipes()
    yield p
    p.close()


@pytest.fixture(autouse=True)
def fast_eof(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("typeypipe.bridge.input.EOF_BACKOFF", 0.05)


def _bridge(pipes: Pipes, **kwargs) -> tuple[InteractiveBridge, FakeShared, LockedBytesIO]:
    shared = FakeShared(pipes.handles)
    stdout = LockedBytesIO()
    kwargs.setdefault("terminal", FakeTerminal())
    kwargs.setdefault("stdin", io.StringIO(""))
    kwargs.setdefault("handle_signals", False)
    bridge = InteractiveBridge(shared, stdout=stdout, **kwargs)  # type: ignore[arg-type]
    return bridge, shared, stdout


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.02)


class TestRelay:
    async def test_output_copied_until_shell_exits(self, pipes: Pipes) -> None:
        bridge, shared, stdout = _bridge(pipes)
        task = asyncio.create_task(bridge.run())

        os.write(pipes.shell_out_w, b"hello from shell\r\n")
        await _wait_for(lambda: b"hello from shell" in stdout.snapshot())
        pipes.end_shell()

        assert await asyncio.wait_for(task, 5) is BridgeExit.SHELL_EXITED
        assert shared.taken == 1


def _fd_is_open(fd: int) -> bool:
    try:
        os.fstat(fd)
    except OSError:
        return False
    return True


class CapturingShared:
    """Real shared session that remembers the handles it hands out."""

    def __init__(self, shared: SharedSession) -> None:
        self.shared = shared
        self.handles: BridgeHandles | None = None

    async def into_bridge_handles(self) -> BridgeHandles:
        self.handles = await self.shared.into_bridge_handles()
        return self.handles

    async def resize(self, rows: int, cols: int) -> None:
        await self.shared.resize(rows, cols)


class TestHandleRelease:
    async def test_handles_closed_after_shell_exit(self, pipes: Pipes) -> None:
        bridge, _, _ = _bridge(pipes)
        task = asyncio.create_task(bridge.run())
        await asyncio.sleep(0.1)
        pipes.end_shell()

        assert await asyncio.wait_for(task, 5) is BridgeExit.SHELL_EXITED
        assert pipes.handles.closed
        assert pipes.writer.closed
        assert not _fd_is_open(pipes.shell_out_r)

    async def test_handles_closed_after_interrupt(self, pipes: Pipes) -> None:
        bridge, _, _ = _bridge(pipes, handle_signals=True)
        task = asyncio.create_task(bridge.run())
        await asyncio.sleep(0.1)
        os.kill(os.getpid(), signal.SIGINT)

        assert await asyncio.wait_for(task, 5) is BridgeExit.INTERRUPTED
        assert pipes.writer.closed
        assert not _fd_is_open(pipes.shell_out_r)

    @pytest.mark.skipif(not os.path.exists("/bin/sh"), reason="requires /bin/sh")
    async def test_real_shell_handles_released(self) -> None:
        shared = await create_session(ShellConfig(shell_path="/bin/sh"))
        capturing = CapturingShared(shared)
        bridge = InteractiveBridge(
            capturing,  # type: ignore[arg-type]
            terminal=FakeTerminal(),  # type: ignore[arg-type]
            stdin=io.StringIO("exit\n"),
            stdout=LockedBytesIO(),
            handle_signals=False,
        )
        try:
            assert await asyncio.wait_for(bridge.run(), 10) is BridgeExit.SHELL_EXITED
        finally:
            await shared.close()

        assert capturing.handles is not None
        assert capturing.handles.writer.closed
        assert not _fd_is_open(capturing.handles.reader_fd)


class TestInput:
    async def test_line_forwarded(self, pipes: Pipes) -> None:
        bridge, _, _ = _bridge(pipes, stdin=io.StringIO("whoami\n"))
        task = asyncio.create_task(bridge.run())
        try:
            assert b"whoami\n" in await asyncio.to_thread(pipes.read_input, b"whoami\n")
        finally:
            pipes.end_shell()
            await asyncio.wait_for(task, 5)

    async def test_queue_injected(self, pipes: Pipes, tmp_path: Path) -> None:
        queue_dir = tmp_path / "queue"
        queue_dir.mkdir()
        log_file = tmp_path / "queue.log"
        (queue_dir / "cmd1").write_text("echo hi\n", encoding="utf-8")

        bridge, _, _ = _bridge(pipes, queue_dir=queue_dir, log_file=log_file, idle_timeout=0)
        task = asyncio.create_task(bridge.run())
        try:
            seen = await asyncio.to_thread(pipes.read_input, b"echo hi\r")
            assert b"echo hi\r" in seen
        finally:
            pipes.end_shell()
            await asyncio.wait_for(task, 5)

        assert not (queue_dir / "cmd1").exists()
        assert "Processing: cmd1" in log_file.read_text(encoding="utf-8")

    async def test_no_queue_without_log_file(self, pipes: Pipes, tmp_path: Path) -> None:
        queue_dir = tmp_path / "queue"
        queue_dir.mkdir()
        (queue_dir / "cmd1").write_text("echo hi\n", encoding="utf-8")

        bridge, _, _ = _bridge(pipes, queue_dir=queue_dir, idle_timeout=0)
        task = asyncio.create_task(bridge.run())
        await asyncio.sleep(1.3)
        pipes.end_shell()
        await asyncio.wait_for(task, 5)

        assert (queue_dir / "cmd1").exists()


class TestRawMode:
    async def test_restored_after_fatal_input(self) -> None:
        term_r, term_w = os.pipe()
        pipes = Pipes(writer=BrokenWriter())
        terminal = FakeTerminal(raw=True, fd=term_r)
        bridge, _, _ = _bridge(pipes, terminal=terminal)
        try:
            os.write(term_w, b"x")
            with pytest.raises(BridgeFatal):
                await asyncio.wait_for(bridge.run(), 5)
            assert terminal.enabled
            assert terminal.restored
            assert pipes.handles.closed
            assert not _fd_is_open(pipes.shell_out_r)
        finally:
            pipes.close()
            os.close(term_r)
            os.close(term_w)

    async def test_line_mode_leaves_terminal_alone(self, pipes: Pipes) -> None:
        terminal = FakeTerminal(raw=False)
        bridge, _, _ = _bridge(pipes, terminal=terminal)
        task = asyncio.create_task(bridge.run())
        await asyncio.sleep(0.1)
        pipes.end_shell()
        await asyncio.wait_for(task, 5)
        assert not terminal.restored


class TestSignals:
    async def test_sigint_interrupts(self, pipes: Pipes) -> None:
        bridge, _, _ = _bridge(pipes, handle_signals=True)
        task = asyncio.create_task(bridge.run())
        await asyncio.sleep(0.1)
        os.kill(os.getpid(), signal.SIGINT)
        assert await asyncio.wait_for(task, 5) is BridgeExit.INTERRUPTED

    async def test_sigwinch_resizes(self, pipes: Pipes) -> None:
        bridge, shared, _ = _bridge(pipes, handle_signals=True)
        task = asyncio.create_task(bridge.run())
        try:
            await asyncio.sleep(0.1)
            os.kill(os.getpid(), signal.SIGWINCH)
            await _wait_for(lambda: shared.resized != [])
            assert shared.resized == [(40, 100)]
        finally:
            pipes.end_shell()
            await asyncio.wait_for(task, 5)
