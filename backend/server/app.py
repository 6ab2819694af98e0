"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (Supervisor)
- Register routes
- Stop the supervisor on shutdown
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import log_event
from replay.toggles import ReplayToggles
from session.supervisor import StartError, Supervisor

from server.routes import register_routes
from server.targets import default_recording


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    supervisor = build_supervisor(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if config.autostart:
            _autostart(config, supervisor)
        try:
            yield
        finally:
            supervisor.stop()

    app = FastAPI(title="Fake IMU Control API", lifespan=lifespan)

    app.state.config = config
    app.state.supervisor = supervisor

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_supervisor(config: AppConfig) -> Supervisor:
    """Build a Supervisor seeded with the configured toggles."""
    return Supervisor(
        recordings_dir=config.recordings_dir,
        baudrate=config.baudrate,
        toggles=ReplayToggles(
            corrupt_checksum=config.checksum_error,
            debug_output=config.debug_output,
        ),
    )


def _autostart(config: AppConfig, supervisor: Supervisor) -> None:
    recording = default_recording(config)
    if recording is None:
        log_event({
            "event_type": "AUTOSTART_SKIPPED",
            "reason": "no_recordings",
            "recordings_dir": config.recordings_dir,
        })
        return

    try:
        supervisor.start(config.device_name, recording)
    except StartError as exc:
        # Control surface stays up; operator can retry via POST /serial
        log_event({
            "event_type": "AUTOSTART_FAILED",
            "device": config.device_name,
            "message": str(exc),
        })
