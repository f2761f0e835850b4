"""Interactive bridge between the local terminal, the shell and the queue."""

from typeypipe.bridge.activity import ActivityTracker, DrainGate
from typeypipe.bridge.core import BridgeExit, InteractiveBridge, run_interactive
from typeypipe.bridge.drain import DrainOutcome, QueueDrainer
from typeypipe.bridge.retry import retry_transient

__all__ = [
    "ActivityTracker",
    "BridgeExit",
    "DrainGate",
    "DrainOutcome",
    "InteractiveBridge",
    "QueueDrainer",
    "retry_transient",
    "run_interactive",
]
