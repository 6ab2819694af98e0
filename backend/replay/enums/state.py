"""
Replay loop state enumeration.

Rules:
- This enum defines ONLY the replay loop states.
- No behavior, no helper methods, no side effects.
- Transitions happen exclusively in replay.loop.
"""

from __future__ import annotations

from enum import Enum


class ReplayState(str, Enum):
    """
    Lifecycle of a single ReplayLoop run.

    IDLE -> AWAITING_TRIGGER -> REPLAYING -> STOPPING -> STOPPED
    (AWAITING_TRIGGER may go straight to STOPPING.)
    """

    IDLE = "IDLE"
    AWAITING_TRIGGER = "AWAITING_TRIGGER"
    REPLAYING = "REPLAYING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
