"""
Operator toggles sampled by the replay loop.

Pure data containers only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class ReplayToggles:
    """
    Snapshot of the operator switches.

    corrupt_checksum:
        Overwrite the checksum-adjacent bytes of each emitted frame.

    debug_output:
        Dump every completed read/write to the diagnostics stream.
    """
    corrupt_checksum: bool = False
    debug_output: bool = False


# Returns the current snapshot; called once per tick / completion
ToggleSource = Callable[[], ReplayToggles]
