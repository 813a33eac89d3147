"""
FastAPI application entrypoint for the OneDrive data robot.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import AppSettings, get_settings
from app.core.context import StorageContext
from app.core.logging import configure_logging
from app.dependencies import build_robot_services


def create_app(
    settings: Optional[AppSettings] = None,
    storage: Optional[StorageContext] = None,
) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OneDrive Data Robot",
        version="0.1.0",
        description="Activates and deactivates per-user drive change subscriptions.",
    )
    app.state.robot = build_robot_services(settings, storage)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
