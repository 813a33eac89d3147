"""
Per-user MSAL token cache persisted in a keyed store.
"""

from __future__ import annotations

import logging
from typing import Optional

import msal
from pydantic import ValidationError

from app.clients.keyed_store import KeyedStore, StoreError
from app.models.records import CachedTokenBlob
from app.services.cache_cipher import CacheBlobCipher, CacheBlobError

logger = logging.getLogger(__name__)


class PersistentTokenCache:
    """
    Hydrates an MSAL ``SerializableTokenCache`` from the store and writes it back.

    The store is read once, on construction. Anything that prevents loading the
    stored blob leaves the cache empty, which MSAL treats like a first sign-in.
    Writes happen only from :meth:`after_access` and only when MSAL reports
    that the cache changed, so plain token reads never touch the store.
    """

    PARTITION = "tokenCache"

    def __init__(
        self,
        *,
        user_id: str,
        store: KeyedStore,
        cipher: Optional[CacheBlobCipher] = None,
    ) -> None:
        self._user_id = user_id
        self._store = store
        self._cipher = cipher
        self._cache = msal.SerializableTokenCache()
        self._load()

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def cache(self) -> msal.SerializableTokenCache:
        """The in-memory cache handed to the MSAL application."""
        return self._cache

    @property
    def has_state_changed(self) -> bool:
        return self._cache.has_state_changed

    def _load(self) -> None:
        try:
            item = self._store.get_item(
                partition_key=self.PARTITION, sort_key=self._user_id
            )
        except StoreError as exc:
            logger.warning(
                "Token cache lookup failed for user %s; starting empty: %s",
                self._user_id,
                exc,
            )
            return
        if not item:
            logger.info("No stored token cache for user %s", self._user_id)
            return

        try:
            blob = CachedTokenBlob.model_validate(item)
            serialized = self._unseal(blob)
            if serialized is None:
                return
            self._cache.deserialize(serialized)
        except (ValidationError, CacheBlobError, ValueError) as exc:
            logger.warning(
                "Discarding unreadable token cache for user %s: %s",
                self._user_id,
                exc,
            )
            self._cache = msal.SerializableTokenCache()
            return

        if self._cipher is not None and not blob.encrypted:
            # Plaintext cache written before sealing was enabled; reseal on next access.
            self._cache.has_state_changed = True

    def _unseal(self, blob: CachedTokenBlob) -> Optional[str]:
        if not blob.encrypted:
            return blob.cache_blob
        if self._cipher is None:
            logger.warning(
                "Token cache for user %s is sealed but no encryption secret is configured",
                self._user_id,
            )
            return None
        return self._cipher.unseal(blob.cache_blob)

    def after_access(self) -> bool:
        """
        Persist the cache if MSAL changed it since the last write.

        Returns True when a write happened. A failed write raises
        :class:`StoreError` and leaves the dirty flag set.
        """
        if not self._cache.has_state_changed:
            return False

        serialized = self._cache.serialize()
        blob = CachedTokenBlob(
            user_id=self._user_id,
            cache_blob=self._cipher.seal(serialized) if self._cipher else serialized,
            encrypted=self._cipher is not None,
        )
        item = {"pk": self.PARTITION, "sk": self._user_id, **blob.model_dump(mode="json")}
        try:
            self._store.put_item(item)
        except StoreError:
            # serialize() already cleared the flag; restore it so the next access retries.
            self._cache.has_state_changed = True
            raise
        self._cache.has_state_changed = False
        logger.debug("Persisted token cache for user %s", self._user_id)
        return True


__all__ = ["PersistentTokenCache"]
