"""
Silent token acquisition through MSAL, backed by the persistent token cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional

import msal

from app.clients.keyed_store import KeyedStore
from app.core.config import GraphSettings
from app.services.cache_cipher import CacheBlobCipher
from app.services.token_cache import PersistentTokenCache

logger = logging.getLogger(__name__)

ApplicationFactory = Callable[[msal.SerializableTokenCache], Any]


class AuthenticationUnavailableError(Exception):
    """Raised when no token can be obtained without user interaction."""


class MsalIdentityProvider:
    """Obtain access tokens for signed-in users without prompting them."""

    def __init__(
        self,
        settings: GraphSettings,
        token_store: KeyedStore,
        *,
        cipher: Optional[CacheBlobCipher] = None,
        application_factory: Optional[ApplicationFactory] = None,
    ) -> None:
        self._settings = settings
        self._store = token_store
        self._cipher = cipher
        self._application_factory = application_factory or self._build_application

    def _build_application(self, cache: msal.SerializableTokenCache) -> Any:
        return msal.ConfidentialClientApplication(
            self._settings.client_id,
            client_credential=self._settings.client_secret,
            authority=self._settings.authority,
            token_cache=cache,
        )

    async def acquire_token_silently(
        self, *, user_id: str, scopes: Optional[Iterable[str]] = None
    ) -> Optional[str]:
        """
        Return an access token for ``user_id`` or None when a sign-in is required.

        A refresh that rotates tokens is written back to the store before this
        returns; a failure to write it raises ``StoreError``.
        """
        requested = list(scopes or self._settings.scopes)
        return await asyncio.to_thread(self._acquire, user_id, requested)

    def _acquire_silent(
        self, token_cache: PersistentTokenCache, user_id: str, scopes: list[str]
    ) -> Optional[dict]:
        application = self._application_factory(token_cache.cache)
        account = _find_account(application.get_accounts(), user_id)
        if account is None:
            logger.info("No cached account for user %s; sign-in required", user_id)
            return None
        return application.acquire_token_silent(scopes, account=account)

    def _acquire(self, user_id: str, scopes: list[str]) -> Optional[str]:
        token_cache = PersistentTokenCache(
            user_id=user_id, store=self._store, cipher=self._cipher
        )
        try:
            result = self._acquire_silent(token_cache, user_id, scopes)
        except Exception as exc:  # MSAL raises raw errors for discovery and transport
            logger.warning(
                "Silent token acquisition raised for user %s: %s",
                user_id,
                exc,
                exc_info=True,
            )
            result = None
        token_cache.after_access()

        if result and "access_token" in result:
            return result["access_token"]
        if result:
            logger.warning(
                "Silent token acquisition failed for user %s: %s",
                user_id,
                result.get("error_description") or result.get("error"),
            )
        return None


def _find_account(accounts: list[dict], user_id: str) -> Optional[dict]:
    for account in accounts:
        if user_id in (account.get("local_account_id"), account.get("home_account_id")):
            return account
    return None


__all__ = ["AuthenticationUnavailableError", "MsalIdentityProvider"]
