"""
Route registration for the fake IMU control API.

Responsibilities:
- Define HTTP endpoints replacing the operator panel
- Translate requests into Supervisor calls
- Pull dependencies from app.state

Handlers are plain `def`: FastAPI runs them on its worker threads,
so Supervisor.stop() may block without stalling the event loop.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from observability.logger import log_event
from replay.frame_store import list_recordings
from replay.toggles import ReplayToggles
from session.supervisor import StartError, Supervisor

from server.targets import resolve_target


class SerialIntent(BaseModel):
    """Start/stop intent; omitted fields fall back to configuration."""
    enabled: bool
    device_name: Optional[str] = None
    recording: Optional[str] = None


class TogglesBody(BaseModel):
    checksum_error: bool = False
    debug_output: bool = False


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/recordings")
    def recordings() -> dict[str, list[str]]: # pyright: ignore[reportUnusedFunction]
        supervisor: Supervisor = app.state.supervisor
        return {"recordings": list_recordings(supervisor.recordings_dir)}

    @app.get("/status")
    def status() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        supervisor: Supervisor = app.state.supervisor
        return supervisor.snapshot()

    @app.post("/serial")
    def serial_intent(intent: SerialIntent) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        supervisor: Supervisor = app.state.supervisor

        if not intent.enabled:
            supervisor.stop()
            return supervisor.snapshot()

        device_name, recording = resolve_target(
            app.state.config,
            device_name=intent.device_name,
            recording=intent.recording,
        )
        if recording is None:
            raise HTTPException(status_code=409, detail="No recording available")

        try:
            supervisor.start(device_name, recording)
        except StartError as exc:
            log_event({
                "event_type": "CONTROL_START_REJECTED",
                "device": device_name,
                "recording": recording,
                "message": str(exc),
            })
            raise HTTPException(status_code=409, detail=str(exc)) from exc

        return supervisor.snapshot()

    @app.put("/toggles")
    def toggles(body: TogglesBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        supervisor: Supervisor = app.state.supervisor
        supervisor.set_toggles(
            ReplayToggles(
                corrupt_checksum=body.checksum_error,
                debug_output=body.debug_output,
            )
        )
        return supervisor.snapshot()
