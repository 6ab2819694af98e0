"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No replay logic
- No protocol constants (see constants.py)
- No runtime mutation (toggles live on the Supervisor)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import DEFAULT_BAUDRATE, DEFAULT_RECORDINGS_DIR


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the control surface and the supervisor.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Serial device
    # ------------------------------------------------------------------

    device_name: str
    baudrate: int

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    recordings_dir: str
    recording: str | None  # None = first available recording

    # ------------------------------------------------------------------
    # Operator toggles (initial values)
    # ------------------------------------------------------------------

    checksum_error: bool
    debug_output: bool
    autostart: bool

    # ------------------------------------------------------------------
    # Control server
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            device_name=os.environ.get("FAKE_IMU_DEVICE", "/dev/ttyUSB0"),
            baudrate=int(os.environ.get("FAKE_IMU_BAUDRATE", str(DEFAULT_BAUDRATE))),

            recordings_dir=os.environ.get("FAKE_IMU_RECORDINGS_DIR", DEFAULT_RECORDINGS_DIR),
            recording=os.environ.get("FAKE_IMU_RECORDING") or None,

            checksum_error=_env_flag("FAKE_IMU_CHECKSUM_ERROR"),
            debug_output=_env_flag("FAKE_IMU_DEBUG_OUTPUT"),
            autostart=_env_flag("FAKE_IMU_AUTOSTART"),

            host=os.environ.get("HOST", "127.0.0.1"),
            port=int(os.environ.get("PORT", "8000")),
        )
