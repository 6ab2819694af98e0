"""
Replay supervisor: start/stop lifecycle for one fake IMU.

Responsibilities:
- Load the selected recording
- Start a fresh I/O engine and open the serial channel
- Spawn the ReplayLoop worker with a fresh stop token
- Stop: signal, join, close, tear down (in that order)
- Hold the operator toggles as an immutable snapshot

Non-responsibilities:
- NO pacing or protocol logic (see replay.loop)
- NO UI; the control surface calls start/stop/set_toggles

Both start() and stop() are idempotent and safe to call from any
control thread.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable

from constants import DEFAULT_BAUDRATE, REPLAY_TICK_PERIOD_S
from diagnostics.sink import DiagnosticsSink
from observability.logger import log_event
from observability.metrics import timed
from replay.frame_store import FrameStore, ResourceNotFound
from replay.loop import ReplayLoop
from replay.toggles import ReplayToggles
from session.run_status import RunStatus
from transport.errors import ConnectError
from transport.io_engine import IoEngine
from transport.serial_channel import SerialChannel


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

EngineFactory = Callable[[], IoEngine]
# Same call shape as SerialChannel.open
ChannelOpener = Callable[..., SerialChannel]


class SupervisorError(Exception):
    """Base class for supervisor errors."""


class StartError(SupervisorError):
    """
    Raised when a start attempt is aborted.

    Wraps ConnectError (device unavailable) or ResourceNotFound
    (recording missing). Nothing is left running.
    """


# ---------------------------------------------------------------------
# Supervisor
# ---------------------------------------------------------------------

class Supervisor:
    """
    Owns at most one channel and one worker at a time.

    Lifecycle:
    1. start(device, recording) -> RUNNING
    2. trigger / replay happen inside the worker
    3. stop() -> NOT_RUNNING
    """

    def __init__(
        self,
        *,
        recordings_dir: str | Path,
        baudrate: int = DEFAULT_BAUDRATE,
        toggles: ReplayToggles = ReplayToggles(),
        engine_factory: EngineFactory = IoEngine,
        channel_opener: ChannelOpener = SerialChannel.open,
        diagnostics: DiagnosticsSink | None = None,
        tick_period_s: float = REPLAY_TICK_PERIOD_S,
    ) -> None:
        self._recordings_dir = Path(recordings_dir)
        self._baudrate = baudrate
        self._toggles = toggles
        self._engine_factory = engine_factory
        self._channel_opener = channel_opener
        self._diagnostics = diagnostics or DiagnosticsSink()
        self._tick_period_s = tick_period_s

        # Serializes start/stop across control threads
        self._lock = threading.Lock()

        self._status = RunStatus.NOT_RUNNING
        self._engine: IoEngine | None = None
        self._channel: SerialChannel | None = None
        self._loop: ReplayLoop | None = None
        self._stop_token: threading.Event | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._worker: Future[None] | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def toggles(self) -> ReplayToggles:
        return self._toggles

    @property
    def loop(self) -> ReplayLoop | None:
        return self._loop

    @property
    def recordings_dir(self) -> Path:
        return self._recordings_dir

    def snapshot(self) -> dict[str, Any]:
        """
        Lightweight snapshot for logging / status endpoints.
        """
        loop = self._loop
        channel = self._channel
        return {
            "status": self._status.value,
            "device": channel.device_name if channel is not None else None,
            "toggles": asdict(self._toggles),
            "replay": loop.snapshot() if loop is not None else None,
        }

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    def set_toggles(self, toggles: ReplayToggles) -> None:
        """
        Replace the toggle snapshot.

        A running loop picks it up on its next tick / completion.
        """
        self._toggles = toggles
        log_event({"event_type": "TOGGLES_CHANGED", **asdict(toggles)})

    def _sample_toggles(self) -> ReplayToggles:
        return self._toggles

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_running(
        self,
        enabled: bool,
        *,
        device_name: str = "",
        recording: str = "",
    ) -> None:
        """
        Apply a start/stop intent from the control surface.

        Raises:
            StartError if enabled and the start attempt fails.
        """
        if enabled:
            self.start(device_name, recording)
        else:
            self.stop()

    def start(self, device_name: str, recording: str) -> None:
        """
        Open the channel and spawn the replay worker.

        No-op if already running.

        Raises:
            StartError if the recording or the device is unavailable.
        """
        with self._lock:
            if self._worker is not None:
                log_event({
                    "event_type": "SUPERVISOR_START_IGNORED",
                    "reason": "already_running",
                    "device": device_name,
                })
                return

            try:
                frames = FrameStore.load(recording, directory=self._recordings_dir)
            except ResourceNotFound as exc:
                log_event({
                    "event_type": "SUPERVISOR_START_FAILED",
                    "device": device_name,
                    "recording": recording,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
                raise StartError(str(exc)) from exc

            engine = self._engine_factory()
            engine.start()

            try:
                with timed("serial_open", device=device_name):
                    channel = self._channel_opener(
                        device_name,
                        engine=engine,
                        baudrate=self._baudrate,
                    )
            except ConnectError as exc:
                engine.stop()
                log_event({
                    "event_type": "SUPERVISOR_START_FAILED",
                    "device": device_name,
                    "recording": recording,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
                raise StartError(str(exc)) from exc

            # Fresh run: untriggered loop, unset stop token
            stop_token = threading.Event()
            loop = ReplayLoop(
                channel=channel,
                frames=frames,
                stop_token=stop_token,
                toggles=self._sample_toggles,
                diagnostics=self._diagnostics,
                tick_period_s=self._tick_period_s,
            )

            executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="replay-worker"
            )
            worker = executor.submit(loop.run)

            self._engine = engine
            self._channel = channel
            self._loop = loop
            self._stop_token = stop_token
            self._executor = executor
            self._worker = worker
            self._status = RunStatus.RUNNING

            log_event({
                "event_type": "SUPERVISOR_STARTED",
                "device": device_name,
                "recording": recording,
            })

    def stop(self) -> None:
        """
        Signal the worker, wait for it, then release channel and engine.

        Blocks for at most about one tick period plus engine teardown.
        No-op if not running.
        """
        with self._lock:
            if self._stop_token is not None:
                self._stop_token.set()

            worker = self._worker
            if worker is None:
                return

            device = self._channel.device_name if self._channel is not None else None
            with timed("supervisor_stop", device=device):
                self._join_and_release(worker)

            final = self._loop.snapshot() if self._loop is not None else None

            self._worker = None
            self._executor = None
            self._stop_token = None
            self._channel = None
            self._engine = None
            self._status = RunStatus.NOT_RUNNING

            log_event({"event_type": "SUPERVISOR_STOPPED", "replay": final})

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _join_and_release(self, worker: Future[None]) -> None:
        try:
            worker.result()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "REPLAY_WORKER_FAILED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        if self._executor is not None:
            self._executor.shutdown(wait=True)

        if self._channel is not None:
            self._channel.close()

        if self._engine is not None:
            self._engine.stop()
