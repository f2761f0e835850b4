"""Queue directory helpers: scanning, ordering and atomic enqueue."""

from __future__ import annotations

import os
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class QueueFile:
    """One pending command file."""

    path: Path
    mtime_ns: int

    @property
    def name(self) -> str:
        return self.path.name


def scan_queue(queue_dir: Path) -> list[QueueFile]:
    """Regular files in ``queue_dir``, oldest modification time first.

    Raises OSError if the directory itself cannot be listed. Entries that
    vanish or cannot be stat'ed mid-scan are skipped.
    """
    files: list[QueueFile] = []
    with os.scandir(queue_dir) as entries:
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                mtime_ns = entry.stat().st_mtime_ns
            except OSError:
                continue
            files.append(QueueFile(Path(entry.path), mtime_ns))
    files.sort(key=lambda f: (f.mtime_ns, f.name))
    return files


def oldest_queue_file(queue_dir: Path) -> QueueFile | None:
    files = scan_queue(queue_dir)
    return files[0] if files else None


def read_command(path: Path) -> str:
    """The command held by a queue file: its full content, trimmed."""
    return path.read_text(encoding="utf-8").strip()


def enqueue_command(queue_dir: Path, command: str) -> Path:
    """Drop ``command`` into the queue atomically and return its path.

    The content is written to a temporary file beside the queue directory
    and renamed into it, so a reader never sees a partial command.
    """
    queue_dir = Path(queue_dir)
    name = f"{time.time_ns()}-{uuid.uuid4().hex[:6]}.cmd"
    fd, tmp = tempfile.mkstemp(prefix=".enqueue-", dir=queue_dir.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(command)
        target = queue_dir / name
        os.replace(tmp, target)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    return target
