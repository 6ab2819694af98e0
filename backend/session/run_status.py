"""
Run status tracking for the supervisor.

Run status is tracked separately from ReplayState: the supervisor knows
whether a worker exists, the loop knows what the worker is doing.
"""
from enum import Enum

class RunStatus(Enum):
    """
    Whether a replay worker is currently owned by the supervisor.
    """
    NOT_RUNNING = "NOT_RUNNING"  # No channel, no worker
    RUNNING = "RUNNING"          # Channel open, worker spawned
