"""
FastAPI dependency utilities for injecting configuration.
"""

from fastapi import Request

from app.core.config import AppSettings


def get_app_settings(request: Request) -> AppSettings:
    """FastAPI dependency returning the settings the application was built with."""
    return request.app.state.robot.settings


__all__ = ["get_app_settings"]
