"""Service layer exports."""

from .cache_cipher import CacheBlobCipher, CacheBlobError
from .identity import AuthenticationUnavailableError, MsalIdentityProvider
from .robot_lifecycle import SubscriptionLifecycleManager
from .subscription_store import SubscriptionRecordStore
from .token_cache import PersistentTokenCache

__all__ = [
    "AuthenticationUnavailableError",
    "CacheBlobCipher",
    "CacheBlobError",
    "MsalIdentityProvider",
    "PersistentTokenCache",
    "SubscriptionLifecycleManager",
    "SubscriptionRecordStore",
]
