# backend/protocol/telemetry.py
"""
Byte-level helpers for the fake IMU serial protocol.

Inbound (host -> device):
    ASCII command line, e.g. b"$TSC,BIN,30\\r\\n"

Outbound (device -> host), 58 bytes:
    9 bytes   ASCII header
    3 x 2     status fields
    6 runs    data (6, 6, 6, 4, 8, 6 bytes)
    2 bytes   checksum field
    5 bytes   ASCII trailer

Usage example:

    if is_trigger_command(payload):
        replaying = True

    frame = store.next_chunk(FRAME_SIZE_BYTES)
    if toggles.corrupt_checksum:
        frame = corrupt_frame(frame)
"""

from __future__ import annotations

from dataclasses import dataclass

from constants import (
    CORRUPTION_BYTE,
    CORRUPTION_OFFSETS_FROM_END,
    FRAME_CHECKSUM_FIELD_BYTES,
    FRAME_DATA_RUN_BYTES,
    FRAME_HEADER_CHARS,
    FRAME_SIZE_BYTES,
    FRAME_STATUS_FIELD_BYTES,
    FRAME_TRAILER_CHARS,
    TRIGGER_COMMAND,
    TRIGGER_STRIP_CHARS,
)


# -------------------------
# Exceptions
# -------------------------

class TelemetryProtocolError(Exception):
    """Base class for telemetry protocol errors."""


class InvalidFrameLength(TelemetryProtocolError):
    """
    Raised when a telemetry frame does not have the length an operation needs.
    """


# -------------------------
# Trigger command
# -------------------------

def strip_line_endings(payload: bytes) -> bytes:
    """Remove every CR and LF byte, wherever it appears."""
    return payload.translate(None, TRIGGER_STRIP_CHARS.encode("ascii"))


def is_trigger_command(payload: bytes) -> bool:
    """
    Return True if `payload` is exactly the replay trigger command
    once line endings are removed.

    Prefix/suffix variations never match. Pure function; never raises.
    """
    try:
        text = strip_line_endings(payload).decode("ascii")
    except UnicodeDecodeError:
        return False
    return text == TRIGGER_COMMAND


# -------------------------
# Checksum corruption
# -------------------------

def corruption_offsets(length: int) -> tuple[int, ...]:
    """Absolute byte offsets overwritten by corrupt_frame()."""
    return tuple(length - back for back in CORRUPTION_OFFSETS_FROM_END)


def corrupt_frame(frame: bytes) -> bytes:
    """
    Return a copy of `frame` with the checksum-adjacent bytes set to '?'.

    Only offsets len-4 and len-3 change.
    """
    if len(frame) < max(CORRUPTION_OFFSETS_FROM_END):
        raise InvalidFrameLength(
            f"Frame length {len(frame)} too short to corrupt"
        )

    out = bytearray(frame)
    for offset in corruption_offsets(len(out)):
        out[offset] = CORRUPTION_BYTE
    return bytes(out)


# -------------------------
# Field layout
# -------------------------

@dataclass(frozen=True)
class TelemetryFields:
    """
    A 58-byte telemetry frame split along its field boundaries.

    header / trailer are raw ASCII bytes; the rest are binary.
    """
    header: bytes
    status: tuple[bytes, ...]
    data_runs: tuple[bytes, ...]
    checksum: bytes
    trailer: bytes


def _take(frame: bytes, offset: int, width: int) -> tuple[bytes, int]:
    return frame[offset : offset + width], offset + width


def split_frame_fields(frame: bytes) -> TelemetryFields:
    """
    Split a telemetry frame into its fields.

    Raises:
        InvalidFrameLength if len(frame) != FRAME_SIZE_BYTES.
    """
    if len(frame) != FRAME_SIZE_BYTES:
        raise InvalidFrameLength(
            f"Telemetry frame length {len(frame)} != {FRAME_SIZE_BYTES}"
        )

    offset = 0
    header, offset = _take(frame, offset, FRAME_HEADER_CHARS)

    status: list[bytes] = []
    for width in FRAME_STATUS_FIELD_BYTES:
        field, offset = _take(frame, offset, width)
        status.append(field)

    runs: list[bytes] = []
    for width in FRAME_DATA_RUN_BYTES:
        field, offset = _take(frame, offset, width)
        runs.append(field)

    checksum, offset = _take(frame, offset, FRAME_CHECKSUM_FIELD_BYTES)
    trailer, offset = _take(frame, offset, FRAME_TRAILER_CHARS)

    return TelemetryFields(
        header=header,
        status=tuple(status),
        data_runs=tuple(runs),
        checksum=checksum,
        trailer=trailer,
    )
