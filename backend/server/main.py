"""
Development entry point for the fake IMU control server.

Responsibilities:
- Load .env
- Build configuration
- Serve the control API with uvicorn

The serial byte stream stays the device's only wire interface; this
HTTP surface only replaces the operator panel.
"""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

import uvicorn  # pylint: disable=wrong-import-position

from config import AppConfig  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------

if __name__ == "__main__":
    config = AppConfig.load_from_env()

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
