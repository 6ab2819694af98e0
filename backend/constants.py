"""
CONSTANTS
---------
Single source of truth for all behavioral invariants of the fake IMU.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Trigger command (host -> device)
# =============================================================================

# Inbound command that switches the device from listening to replaying
TRIGGER_COMMAND: Final[str] = "$TSC,BIN,30"

# Removed from the inbound payload before comparing (anywhere in payload)
TRIGGER_STRIP_CHARS: Final[str] = "\r\n"

# =============================================================================
# Binary telemetry frame (device -> host)
# =============================================================================

FRAME_SIZE_BYTES: Final[int] = 58

# Field widths, in order, as printed by the frame diagnostics
FRAME_HEADER_CHARS: Final[int] = 9
FRAME_STATUS_FIELD_BYTES: Final[Tuple[int, ...]] = (2, 2, 2)
FRAME_DATA_RUN_BYTES: Final[Tuple[int, ...]] = (6, 6, 6, 4, 8, 6)
FRAME_CHECKSUM_FIELD_BYTES: Final[int] = 2
FRAME_TRAILER_CHARS: Final[int] = 5

# =============================================================================
# Checksum corruption (negative-path testing)
# =============================================================================

CORRUPTION_BYTE: Final[int] = ord("?")  # 0x3F

# Offsets counted back from the end of the frame
CORRUPTION_OFFSETS_FROM_END: Final[Tuple[int, ...]] = (4, 3)

# =============================================================================
# Replay pacing
# =============================================================================

REPLAY_RATE_HZ: Final[int] = 30
REPLAY_TICK_PERIOD_S: Final[float] = 1.0 / REPLAY_RATE_HZ

# =============================================================================
# Serial transport
# =============================================================================

READ_BUFFER_BYTES: Final[int] = 1024
DEFAULT_BAUDRATE: Final[int] = 115_200

# pyserial read timeout; a poll interval only, NOT an operation timeout.
# Lets a blocked read notice that the channel was closed.
SERIAL_READ_POLL_S: Final[float] = 0.05

# =============================================================================
# Recordings
# =============================================================================

RECORDING_SUFFIX: Final[str] = ".bin"
DEFAULT_RECORDINGS_DIR: Final[str] = "./data"
