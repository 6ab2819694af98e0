"""
Operator diagnostics for serial traffic.

Responsibilities:
- Hex dump of arbitrary inbound/outbound bytes (one line per call)
- Field dump of an outbound telemetry frame (one line per call)

Non-responsibilities:
- Deciding whether diagnostics are enabled (callers sample the toggle)
- Structured JSONL logging (see observability.logger)

Line formats:

    > 24 54 53 43 2C 42 49 4E 2C 33 30 0D 0A
    < $TSC,BIN,0102 0304 0506 ... 0A0B?????
"""

from __future__ import annotations

import sys
from typing import Callable

from diagnostics.direction import Direction
from protocol.telemetry import InvalidFrameLength, split_frame_fields


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


# ------------------------------------------------------------------
# Pure formatting
# ------------------------------------------------------------------

def _hex(data: bytes) -> str:
    return data.hex().upper()


def format_raw(direction: Direction, data: bytes) -> str:
    """Marker followed by space-separated two-digit hex pairs."""
    pairs = " ".join(f"{b:02X}" for b in data)
    return f"{direction.value} {pairs}"


def format_frame(frame: bytes) -> str:
    """
    Render a 58-byte telemetry frame field by field.

    The header runs straight into the first status field and the
    checksum runs straight into the trailer, matching the device's
    own debug print.

    Raises:
        InvalidFrameLength if the frame is not FRAME_SIZE_BYTES long.
    """
    fields = split_frame_fields(frame)

    groups = [_hex(f) for f in fields.status[1:]]
    groups += [_hex(run) for run in fields.data_runs]
    groups.append(_hex(fields.checksum) + fields.trailer.decode("latin-1"))

    head = fields.header.decode("latin-1") + _hex(fields.status[0])
    return f"{Direction.WRITE.value} {head} " + " ".join(groups)


# ------------------------------------------------------------------
# Sink
# ------------------------------------------------------------------

class DiagnosticsSink:
    """
    One-way text stream for read/write traces.

    Stateless; safe to call from the I/O engine thread.
    """

    def dump_raw(self, direction: Direction, data: bytes) -> None:
        _print(format_raw(direction, data))

    def dump_frame(self, frame: bytes) -> None:
        """
        Dump a written frame by field.

        Frames that do not match the telemetry layout are dumped raw.
        """
        try:
            line = format_frame(frame)
        except InvalidFrameLength:
            line = format_raw(Direction.WRITE, frame)
        _print(line)
