"""
Resolve which device and recording a start request targets.
"""

from __future__ import annotations

from config import AppConfig
from replay.frame_store import list_recordings


def default_recording(config: AppConfig) -> str | None:
    """Configured recording, else the first one on disk."""
    if config.recording:
        return config.recording
    names = list_recordings(config.recordings_dir)
    return names[0] if names else None


def resolve_target(
    config: AppConfig,
    *,
    device_name: str | None,
    recording: str | None,
) -> tuple[str, str | None]:
    """Request values win over configuration; recording may be None."""
    return (
        device_name or config.device_name,
        recording or default_recording(config),
    )
