"""
Plain records persisted by the robot, independent of any store layout.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CachedTokenBlob(BaseModel):
    """Serialized MSAL token cache for one signed-in user."""

    user_id: str = Field(..., description="Identifier of the owning user.")
    cache_blob: str = Field(
        ..., description="Output of SerializableTokenCache.serialize(), possibly sealed."
    )
    encrypted: bool = False
    last_write: datetime = Field(default_factory=_utcnow)


class SubscriptionRecord(BaseModel):
    """Pairs a user's Graph webhook subscription with its delta cursor."""

    subscription_id: str
    user_id: str
    delta_link: Optional[str] = Field(
        None, description="Opaque @odata.deltaLink to resume the change feed from."
    )
    expiration: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["CachedTokenBlob", "SubscriptionRecord"]
