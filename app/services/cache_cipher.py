"""Symmetric sealing of serialized token caches before they reach the store."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class CacheBlobError(Exception):
    """Raised when a stored cache blob cannot be unsealed."""


class CacheBlobCipher:
    """Seal and unseal serialized cache state with a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, serialized_cache: str) -> str:
        """Encrypt a serialized cache and return the Fernet token."""
        return self._fernet.encrypt(serialized_cache.encode("utf-8")).decode("ascii")

    def unseal(self, sealed: str) -> str:
        """Decrypt a sealed cache and return the serialized JSON."""
        try:
            plaintext = self._fernet.decrypt(sealed.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise CacheBlobError("Stored token cache could not be unsealed.") from exc
        return plaintext.decode("utf-8")


__all__ = ["CacheBlobCipher", "CacheBlobError"]
