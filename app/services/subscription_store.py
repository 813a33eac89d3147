"""
Durable storage for the subscription/delta-cursor pairing of each user.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.clients.keyed_store import KeyedStore, StoreError
from app.models.records import SubscriptionRecord

logger = logging.getLogger(__name__)


class SubscriptionRecordStore:
    """Maps :class:`SubscriptionRecord` objects to keyed store items."""

    PARTITION = "subscription"

    def __init__(self, store: KeyedStore) -> None:
        self._store = store

    async def upsert(self, record: SubscriptionRecord) -> None:
        """Insert or replace the record stored under its subscription id."""
        await asyncio.to_thread(self._store.put_item, self._to_item(record))

    async def find_by_subscription_id(
        self, subscription_id: str
    ) -> Optional[SubscriptionRecord]:
        try:
            item = await asyncio.to_thread(
                self._store.get_item,
                partition_key=self.PARTITION,
                sort_key=subscription_id,
            )
        except StoreError as exc:
            logger.warning("Lookup of subscription %s failed: %s", subscription_id, exc)
            return None
        return self._from_item(item)

    async def find_by_user_id(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Return the first record owned by ``user_id``; uniqueness is up to callers."""
        try:
            item = await asyncio.to_thread(
                self._store.find_item,
                partition_key=self.PARTITION,
                predicate=lambda candidate: candidate.get("user_id") == user_id,
            )
        except StoreError as exc:
            logger.warning("Lookup of subscription for user %s failed: %s", user_id, exc)
            return None
        return self._from_item(item)

    async def delete(self, record: SubscriptionRecord) -> None:
        """Remove the record; removing an absent record is not an error."""
        await asyncio.to_thread(
            self._store.delete_item,
            partition_key=self.PARTITION,
            sort_key=record.subscription_id,
        )

    def _to_item(self, record: SubscriptionRecord) -> Dict[str, Any]:
        return {
            "pk": self.PARTITION,
            "sk": record.subscription_id,
            **record.model_dump(mode="json"),
        }

    @staticmethod
    def _from_item(item: Optional[Dict[str, Any]]) -> Optional[SubscriptionRecord]:
        if not item:
            return None
        try:
            return SubscriptionRecord.model_validate(item)
        except ValidationError as exc:
            logger.warning("Ignoring malformed subscription record %s: %s", item.get("sk"), exc)
            return None


__all__ = ["SubscriptionRecordStore"]
