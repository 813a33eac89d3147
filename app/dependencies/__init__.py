"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    RobotServices,
    build_robot_services,
    get_lifecycle_manager,
    get_robot_services,
    get_subscription_record_store,
)
from .config import get_app_settings

__all__ = [
    "RobotServices",
    "build_robot_services",
    "get_app_settings",
    "get_lifecycle_manager",
    "get_robot_services",
    "get_subscription_record_store",
]
