"""Result shapes returned by robot activation and deactivation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ActivateResult(BaseModel):
    """Outcome of activating the robot for a user."""

    success: bool
    subscription_id: Optional[str] = Field(
        None, description="Graph subscription now watching the user's drive."
    )
    expiration: Optional[datetime] = Field(
        None, description="When Graph will drop the subscription unless renewed."
    )
    error_message: Optional[str] = None


class DeactivateResult(BaseModel):
    """Outcome of deactivating the robot for a user."""

    success: bool
    message: Optional[str] = None


class NotificationReceipt(BaseModel):
    """Acknowledgement returned to Graph for a notification batch."""

    accepted: int = 0
    rejected: int = 0


__all__ = ["ActivateResult", "DeactivateResult", "NotificationReceipt"]
