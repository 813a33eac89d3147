"""
Activation and deactivation of the drive-watching robot.

Each user has at most one Graph webhook subscription, stored together with the
delta link the robot resumes from. Activation creates or renews it and always
re-anchors the delta link at "now"; deactivation removes it. Both operations
report every outcome through a result object instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from app.clients.graph import GraphClient
from app.clients.keyed_store import StoreError
from app.core.config import SubscriptionSettings
from app.models.records import SubscriptionRecord
from app.schemas.graph import GraphSubscription, SubscriptionRequest
from app.schemas.robot import ActivateResult, DeactivateResult
from app.services.identity import AuthenticationUnavailableError, MsalIdentityProvider
from app.services.subscription_store import SubscriptionRecordStore

logger = logging.getLogger(__name__)

NOT_ACTIVATED_MESSAGE = "The robot wasn't activated for you anyway!"
DEACTIVATED_MESSAGE = "The robot has been deactivated from your account."


class SubscriptionLifecycleManager:
    """Create-or-renew and tear down the per-user webhook subscription."""

    def __init__(
        self,
        *,
        identity_provider: MsalIdentityProvider,
        graph_client: GraphClient,
        record_store: SubscriptionRecordStore,
        settings: SubscriptionSettings,
    ) -> None:
        self._identity = identity_provider
        self._graph = graph_client
        self._records = record_store
        self._settings = settings
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @asynccontextmanager
    async def _user_scope(self, user_id: str) -> AsyncIterator[None]:
        """Serialize lifecycle operations for one user within this process."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        async with lock:
            yield

    async def _acquire_token(self, user_id: str) -> str:
        try:
            token = await self._identity.acquire_token_silently(user_id=user_id)
        except StoreError as exc:
            raise AuthenticationUnavailableError(
                f"Could not persist refreshed tokens: {exc}"
            ) from exc
        except Exception as exc:
            logger.warning(
                "Token acquisition for user %s raised: %s", user_id, exc, exc_info=True
            )
            raise AuthenticationUnavailableError(
                f"Could not obtain a token for this user: {exc}"
            ) from exc
        if not token:
            raise AuthenticationUnavailableError(
                "No valid session for this user; sign in again."
            )
        return token

    def _subscription_request(self) -> SubscriptionRequest:
        return SubscriptionRequest(
            change_type=self._settings.change_type,
            notification_url=str(self._settings.notification_url),
            resource=self._settings.resource,
            expiration_date_time=self._expiration(),
            client_state=self._settings.client_state,
        )

    def _expiration(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=self._settings.expiration_days)

    async def activate(self, user_id: str) -> ActivateResult:
        """Make sure ``user_id`` has a live subscription and a fresh delta link."""
        async with self._user_scope(user_id):
            try:
                access_token = await self._acquire_token(user_id)
            except AuthenticationUnavailableError as exc:
                return ActivateResult(success=False, error_message=str(exc))

            existing = await self._records.find_by_user_id(user_id)

            subscription: Optional[GraphSubscription] = None
            if existing is not None:
                subscription = await self._renew(access_token, existing)

            created = subscription is None
            if created:
                try:
                    subscription = await self._graph.create_subscription(
                        access_token, self._subscription_request()
                    )
                except Exception as exc:
                    logger.error("Creating subscription for user %s failed: %s", user_id, exc)
                    return ActivateResult(
                        success=False,
                        error_message=f"Could not create the change subscription: {exc}",
                    )
                logger.info("Created subscription %s for user %s", subscription.id, user_id)

            try:
                delta_link = await self._graph.get_latest_delta_link(
                    access_token, self._settings.resource
                )
            except Exception as exc:
                logger.error("Fetching delta link for user %s failed: %s", user_id, exc)
                if created:
                    await self._discard_remote(access_token, subscription.id)
                return ActivateResult(
                    success=False,
                    error_message=f"Could not read the drive change cursor: {exc}",
                )

            record = SubscriptionRecord(
                subscription_id=subscription.id,
                user_id=user_id,
                delta_link=delta_link,
                expiration=subscription.expiration_date_time,
            )
            try:
                await self._records.upsert(record)
            except StoreError as exc:
                logger.error("Persisting subscription for user %s failed: %s", user_id, exc)
                return ActivateResult(
                    success=False,
                    error_message=f"Could not save the subscription state: {exc}",
                )

            if existing is not None and existing.subscription_id != record.subscription_id:
                try:
                    await self._records.delete(existing)
                except StoreError as exc:
                    logger.warning(
                        "Superseded record %s for user %s could not be removed: %s",
                        existing.subscription_id,
                        user_id,
                        exc,
                    )

            return ActivateResult(
                success=True,
                subscription_id=subscription.id,
                expiration=subscription.expiration_date_time,
            )

    async def _renew(
        self, access_token: str, existing: SubscriptionRecord
    ) -> Optional[GraphSubscription]:
        try:
            renewed = await self._graph.update_subscription(
                access_token, existing.subscription_id, expiration=self._expiration()
            )
        except Exception as exc:
            # A transient failure here may leave the old subscription alive remotely
            # until it expires; a new one is created regardless.
            logger.warning(
                "Renewing subscription %s for user %s failed, creating a new one: %s",
                existing.subscription_id,
                existing.user_id,
                exc,
            )
            return None
        logger.info(
            "Renewed subscription %s for user %s", renewed.id, existing.user_id
        )
        return renewed

    async def _discard_remote(self, access_token: str, subscription_id: str) -> None:
        try:
            await self._graph.delete_subscription(access_token, subscription_id)
        except Exception as exc:
            logger.warning("Could not remove subscription %s: %s", subscription_id, exc)

    async def deactivate(self, user_id: str) -> DeactivateResult:
        """Remove the user's subscription remotely (best effort) and locally."""
        async with self._user_scope(user_id):
            try:
                access_token = await self._acquire_token(user_id)
            except AuthenticationUnavailableError as exc:
                return DeactivateResult(success=False, message=str(exc))

            existing = await self._records.find_by_user_id(user_id)
            if existing is None:
                return DeactivateResult(success=True, message=NOT_ACTIVATED_MESSAGE)

            await self._discard_remote(access_token, existing.subscription_id)

            try:
                await self._records.delete(existing)
            except StoreError as exc:
                logger.error("Removing subscription state for user %s failed: %s", user_id, exc)
                return DeactivateResult(
                    success=False,
                    message=f"Could not remove the subscription state: {exc}",
                )

            logger.info(
                "Deactivated robot for user %s (subscription %s)",
                user_id,
                existing.subscription_id,
            )
            return DeactivateResult(success=True, message=DEACTIVATED_MESSAGE)


__all__ = [
    "DEACTIVATED_MESSAGE",
    "NOT_ACTIVATED_MESSAGE",
    "SubscriptionLifecycleManager",
]
