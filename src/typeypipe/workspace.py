"""Working directory layout: ``<base>/<queue>/`` and ``<base>/<queue>.log``."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    base_dir: Path
    queue_dir: Path
    log_file: Path


def workspace_paths(base_dir: Path | str, queue_name: str | None = None) -> Workspace:
    """Resolve paths for a queue; the default queue name is this process's id."""
    base = Path(base_dir)
    name = queue_name or str(os.getpid())
    return Workspace(base_dir=base, queue_dir=base / name, log_file=base / f"{name}.log")


def prepare_workspace(base_dir: Path | str, queue_name: str | None = None) -> Workspace:
    """Create a fresh queue directory and an empty log file.

    Leftovers from a previous run under the same name are discarded.
    """
    ws = workspace_paths(base_dir, queue_name)
    ws.base_dir.mkdir(parents=True, exist_ok=True)

    ws.log_file.write_bytes(b"")

    if ws.queue_dir.exists():
        shutil.rmtree(ws.queue_dir, ignore_errors=True)
    ws.queue_dir.mkdir(parents=True, exist_ok=True)

    logger.debug("Workspace ready: queue=%s log=%s", ws.queue_dir, ws.log_file)
    return ws
