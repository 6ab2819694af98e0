"""
Serial channel with completion-callback I/O.

Responsibilities:
- Own exactly one open pyserial port
- Register non-blocking reads and writes with the IoEngine
- Deliver (error, bytes_transferred, data) to completion callbacks

Non-responsibilities:
- NO re-arming of reads (callers decide)
- NO retries, NO timeouts on operations
- NO interpretation of payloads

Usage example:

    engine = IoEngine()
    engine.start()
    channel = SerialChannel.open("/dev/ttyUSB0", engine=engine)

    def on_read(error, n, data):
        ...
        channel.async_read(on_read)

    channel.async_read(on_read)
    channel.async_write(frame, on_write)
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

import serial

from constants import DEFAULT_BAUDRATE, READ_BUFFER_BYTES, SERIAL_READ_POLL_S
from observability.logger import log_event
from transport.errors import ConnectError, IoError
from transport.io_engine import IoEngine


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

# (error, bytes_transferred, data); error is None on success
IoCallback = Callable[[Optional[IoError], int, bytes], None]

# Same call shape as serial.serial_for_url
PortFactory = Callable[..., Any]


class SerialChannel:
    """
    One open serial connection.

    Thread model:
    - async_read / async_write may be called from any thread
    - blocking port calls run on the engine's reader/writer threads
    - callbacks run on the engine loop thread
    """

    def __init__(self, *, port: Any, engine: IoEngine, device_name: str) -> None:
        self._port = port
        self._engine = engine
        self._device_name = device_name

        self._close_lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        device_name: str,
        *,
        engine: IoEngine,
        baudrate: int = DEFAULT_BAUDRATE,
        port_factory: PortFactory = serial.serial_for_url,
    ) -> SerialChannel:
        """
        Open `device_name` (a device path or a pyserial URL).

        Raises:
            ConnectError if the device does not exist or cannot be claimed.
        """
        try:
            port = port_factory(
                device_name,
                baudrate=baudrate,
                timeout=SERIAL_READ_POLL_S,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            log_event({
                "event_type": "SERIAL_OPEN_FAILED",
                "device": device_name,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            raise ConnectError(f"Cannot open {device_name}: {exc}") from exc

        log_event({
            "event_type": "SERIAL_OPENED",
            "device": device_name,
            "baudrate": baudrate,
        })
        return cls(port=port, engine=engine, device_name=device_name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def device_name(self) -> str:
        return self._device_name

    @property
    def is_open(self) -> bool:
        return not self._closed

    def async_read(
        self,
        callback: IoCallback,
        *,
        max_bytes: int = READ_BUFFER_BYTES,
    ) -> None:
        """
        Register one pending read.

        Completes once at least one byte arrived, with everything
        buffered up to max_bytes.

        Raises:
            IoError if the engine is not running.
        """
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        self._engine.submit(self._read_some(callback, max_bytes))

    def async_write(self, data: bytes, callback: IoCallback) -> None:
        """
        Register one pending write of `data`.

        Writes complete in submission order; no back-pressure.

        Raises:
            IoError if the engine is not running.
        """
        self._engine.submit(self._write(bytes(data), callback))

    def close(self) -> None:
        """Release the port. Idempotent."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._port.close()
        except (serial.SerialException, OSError) as exc:
            log_event({
                "event_type": "SERIAL_CLOSE_ERROR",
                "device": self._device_name,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return

        log_event({"event_type": "SERIAL_CLOSED", "device": self._device_name})

    # ------------------------------------------------------------------
    # Engine-side coroutines
    # ------------------------------------------------------------------

    async def _read_some(self, callback: IoCallback, max_bytes: int) -> None:
        error: IoError | None = None
        data = b""
        try:
            data = await self._engine.run_blocking_read(
                self._blocking_read_some, max_bytes
            )
        except IoError as exc:
            error = exc
        except Exception as exc:  # pylint: disable=broad-exception-caught
            error = IoError(f"{type(exc).__name__}: {exc}")

        self._complete(callback, error, len(data), data)

    async def _write(self, payload: bytes, callback: IoCallback) -> None:
        error: IoError | None = None
        written = 0
        try:
            written = await self._engine.run_blocking_write(
                self._blocking_write, payload
            )
        except IoError as exc:
            error = exc
        except Exception as exc:  # pylint: disable=broad-exception-caught
            error = IoError(f"{type(exc).__name__}: {exc}")

        self._complete(callback, error, written, payload)

    def _complete(
        self,
        callback: IoCallback,
        error: IoError | None,
        bytes_transferred: int,
        data: bytes,
    ) -> None:
        try:
            callback(error, bytes_transferred, data)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "IO_CALLBACK_ERROR",
                "device": self._device_name,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

    # ------------------------------------------------------------------
    # Blocking port calls (reader / writer threads only)
    # ------------------------------------------------------------------

    def _blocking_read_some(self, max_bytes: int) -> bytes:
        while True:
            if self._closed or not self._engine.running:
                raise IoError(f"{self._device_name}: channel closed")

            try:
                first = self._port.read(1)
                if not first:
                    continue  # poll interval elapsed, nothing arrived

                extra = min(self._port.in_waiting, max_bytes - 1)
                rest = self._port.read(extra) if extra > 0 else b""
            except (serial.SerialException, OSError) as exc:
                raise IoError(f"{self._device_name}: {exc}") from exc

            return first + rest

    def _blocking_write(self, payload: bytes) -> int:
        if self._closed:
            raise IoError(f"{self._device_name}: channel closed")

        try:
            written = self._port.write(payload)
        except (serial.SerialException, OSError) as exc:
            raise IoError(f"{self._device_name}: {exc}") from exc

        return len(payload) if written is None else written
