"""
Replay loop: the background worker of one supervisor run.

Responsibilities:
- Keep exactly one read pending on the channel at all times
- Detect the trigger command and switch to replaying (once, permanently)
- Emit one recorded frame per tick while replaying
- Optionally corrupt each emitted frame (decided per tick)
- Exit promptly once the stop token is set

Non-responsibilities:
- NO opening/closing of the channel (Supervisor owns it)
- NO retries: failed writes are dropped, the next tick writes anew
- NO catch-up ticks: pacing is best-effort

Thread model:
- run() executes on the worker thread (pacing path)
- _on_read / _on_write execute on the I/O engine thread
- the trigger flag has a single writer (_on_read) and a single reader
  (_tick); it only ever goes False -> True
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from constants import FRAME_SIZE_BYTES, REPLAY_TICK_PERIOD_S
from diagnostics.direction import Direction
from diagnostics.sink import DiagnosticsSink
from observability.logger import log_event
from protocol.telemetry import corrupt_frame, is_trigger_command
from replay.enums.state import ReplayState
from replay.frame_store import FrameStore
from replay.toggles import ReplayToggles, ToggleSource
from transport.errors import IoError

if TYPE_CHECKING:
    from transport.serial_channel import SerialChannel


@dataclass
class ReplayCounters:
    """
    Counters for observability.
    """
    reads: int = 0
    read_errors: int = 0
    frames_sent: int = 0
    frames_written: int = 0
    write_errors: int = 0


class ReplayLoop:
    """
    Trigger-gated, fixed-rate frame replay over a SerialChannel.

    One instance per run: a fresh loop starts untriggered with a fresh
    stop token.
    """

    def __init__(
        self,
        *,
        channel: SerialChannel,
        frames: FrameStore,
        stop_token: threading.Event,
        toggles: ToggleSource = ReplayToggles,
        diagnostics: DiagnosticsSink | None = None,
        tick_period_s: float = REPLAY_TICK_PERIOD_S,
        frame_size: int = FRAME_SIZE_BYTES,
    ) -> None:
        if tick_period_s <= 0:
            raise ValueError("tick_period_s must be > 0")
        if frame_size <= 0:
            raise ValueError("frame_size must be > 0")

        self._channel = channel
        self._frames = frames
        self._stop = stop_token
        self._toggles = toggles
        self._diagnostics = diagnostics or DiagnosticsSink()
        self._tick_period_s = tick_period_s
        self._frame_size = frame_size

        self._state = ReplayState.IDLE
        self._state_lock = threading.Lock()
        self._trigger_received = False

        self.counters = ReplayCounters()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def trigger_received(self) -> bool:
        return self._trigger_received

    def snapshot(self) -> dict[str, Any]:
        """
        Lightweight snapshot for logging / status.
        """
        return {
            "state": self._state.value,
            "trigger_received": self._trigger_received,
            "recording": self._frames.name,
            **asdict(self.counters),
        }

    # ------------------------------------------------------------------
    # Worker body
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Worker thread entry point. Returns once the stop token is set.
        """
        if not self._transition({ReplayState.IDLE}, ReplayState.AWAITING_TRIGGER):
            raise RuntimeError(f"ReplayLoop cannot run from state {self._state.value}")

        log_event({
            "event_type": "REPLAY_LOOP_STARTED",
            "device": self._channel.device_name,
            "recording": self._frames.name,
            "tick_period_s": self._tick_period_s,
        })

        try:
            self._arm_read()

            while not self._stop.is_set():
                self._tick()
                # Best-effort pacing; an early wake-up means stop was requested
                self._stop.wait(self._tick_period_s)

            self._transition(
                {ReplayState.AWAITING_TRIGGER, ReplayState.REPLAYING},
                ReplayState.STOPPING,
            )
        finally:
            with self._state_lock:
                self._state = ReplayState.STOPPED

            log_event({
                "event_type": "REPLAY_LOOP_EXITED",
                **self.snapshot(),
            })

    # ------------------------------------------------------------------
    # Pacing path (worker thread)
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        if not self._trigger_received:
            return

        frame = self._frames.next_chunk(self._frame_size)

        if self._toggles().corrupt_checksum:
            frame = corrupt_frame(frame)

        try:
            self._channel.async_write(frame, self._on_write)
        except IoError as exc:
            self.counters.write_errors += 1
            log_event({
                "event_type": "SERIAL_WRITE_ERROR",
                "device": self._channel.device_name,
                "phase": "submit",
                "message": str(exc),
            })
            return

        self.counters.frames_sent += 1

    # ------------------------------------------------------------------
    # Completion path (I/O engine thread)
    # ------------------------------------------------------------------

    def _arm_read(self) -> None:
        if self._stop.is_set() or not self._channel.is_open:
            return

        try:
            self._channel.async_read(self._on_read)
        except IoError as exc:
            self.counters.read_errors += 1
            log_event({
                "event_type": "SERIAL_READ_ERROR",
                "device": self._channel.device_name,
                "phase": "submit",
                "message": str(exc),
            })

    def _on_read(self, error: IoError | None, bytes_transferred: int, data: bytes) -> None:
        # Completions landing after stop are ignored
        if self._stop.is_set():
            return

        if error is not None:
            self.counters.read_errors += 1
            log_event({
                "event_type": "SERIAL_READ_ERROR",
                "device": self._channel.device_name,
                "phase": "complete",
                "message": str(error),
            })
        else:
            self.counters.reads += 1
            payload = data[:bytes_transferred]

            if self._toggles().debug_output:
                self._diagnostics.dump_raw(Direction.READ, payload)

            if is_trigger_command(payload):
                self._on_trigger()

        # Keep listening, whatever the outcome
        self._arm_read()

    def _on_write(self, error: IoError | None, bytes_transferred: int, data: bytes) -> None:
        if self._stop.is_set():
            return

        if error is not None:
            self.counters.write_errors += 1
            log_event({
                "event_type": "SERIAL_WRITE_ERROR",
                "device": self._channel.device_name,
                "phase": "complete",
                "message": str(error),
            })
            return

        self.counters.frames_written += 1

        if self._toggles().debug_output:
            self._diagnostics.dump_frame(data[:bytes_transferred])

    def _on_trigger(self) -> None:
        first = not self._trigger_received
        self._trigger_received = True
        self._transition({ReplayState.AWAITING_TRIGGER}, ReplayState.REPLAYING)

        if first:
            log_event({
                "event_type": "REPLAY_TRIGGERED",
                "device": self._channel.device_name,
                "recording": self._frames.name,
            })

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, allowed: set[ReplayState], target: ReplayState) -> bool:
        with self._state_lock:
            if self._state not in allowed:
                return False
            self._state = target
            return True
