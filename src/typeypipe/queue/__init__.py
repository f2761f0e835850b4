"""File-based command queue."""

from typeypipe.queue.files import QueueFile, enqueue_command, oldest_queue_file, scan_queue
from typeypipe.queue.processor import QueueProcessor

__all__ = [
    "QueueFile",
    "QueueProcessor",
    "enqueue_command",
    "oldest_queue_file",
    "scan_queue",
]
