"""Pydantic models for the Microsoft Graph subscription payloads."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Graph emits up to seven fractional digits; datetime parsing accepts six.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(value: Any) -> Any:
    if isinstance(value, str):
        return _EXCESS_FRACTION.sub(r"\1", value)
    return value


class SubscriptionRequest(BaseModel):
    """Body sent to ``POST /subscriptions``."""

    model_config = ConfigDict(populate_by_name=True)

    change_type: str = Field(..., alias="changeType")
    notification_url: str = Field(..., alias="notificationUrl")
    resource: str = Field(..., description="Watched resource path, e.g. /me/drive/root.")
    expiration_date_time: datetime = Field(..., alias="expirationDateTime")
    client_state: Optional[str] = Field(
        None,
        alias="clientState",
        description="Opaque value Graph echoes back so notifications can be verified.",
    )

    def to_graph(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GraphSubscription(BaseModel):
    """Subscription resource as returned by Graph."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    resource: Optional[str] = None
    change_type: Optional[str] = Field(None, alias="changeType")
    expiration_date_time: datetime = Field(..., alias="expirationDateTime")

    @field_validator("expiration_date_time", mode="before")
    @classmethod
    def _trim_expiration(cls, value: Any) -> Any:
        return _trim_fraction(value)


class ChangeNotification(BaseModel):
    """Single entry of a webhook notification batch."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subscription_id: str = Field(..., alias="subscriptionId")
    client_state: Optional[str] = Field(None, alias="clientState")
    resource: Optional[str] = None
    change_type: Optional[str] = Field(None, alias="changeType")


class ChangeNotificationBatch(BaseModel):
    """Envelope Graph posts to the notification URL."""

    value: List[ChangeNotification] = Field(default_factory=list)


__all__ = [
    "ChangeNotification",
    "ChangeNotificationBatch",
    "GraphSubscription",
    "SubscriptionRequest",
]
