"""
Construction of the robot services and FastAPI dependencies that expose them.

Services are built once by :func:`build_robot_services` when the application is
created and kept on ``app.state``; the dependency functions only read them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.clients import GraphClient
from app.core.config import AppSettings
from app.core.context import StorageContext, build_storage_context
from app.services import (
    CacheBlobCipher,
    MsalIdentityProvider,
    SubscriptionLifecycleManager,
    SubscriptionRecordStore,
)


@dataclass(frozen=True)
class RobotServices:
    """Everything a request handler may need, wired from one settings object."""

    settings: AppSettings
    storage: StorageContext
    identity_provider: MsalIdentityProvider
    graph_client: GraphClient
    record_store: SubscriptionRecordStore
    lifecycle_manager: SubscriptionLifecycleManager


def build_robot_services(
    settings: AppSettings, storage: Optional[StorageContext] = None
) -> RobotServices:
    """Wire the identity provider, Graph client and lifecycle manager together."""
    storage = storage or build_storage_context(settings.storage)
    secret = settings.security.token_encryption_secret
    cipher = CacheBlobCipher(secret=secret) if secret else None

    identity_provider = MsalIdentityProvider(
        settings.graph, storage.token_cache_store, cipher=cipher
    )
    graph_client = GraphClient(settings.graph)
    record_store = SubscriptionRecordStore(storage.sync_state_store)
    lifecycle_manager = SubscriptionLifecycleManager(
        identity_provider=identity_provider,
        graph_client=graph_client,
        record_store=record_store,
        settings=settings.subscription,
    )
    return RobotServices(
        settings=settings,
        storage=storage,
        identity_provider=identity_provider,
        graph_client=graph_client,
        record_store=record_store,
        lifecycle_manager=lifecycle_manager,
    )


def get_robot_services(request: Request) -> RobotServices:
    return request.app.state.robot


def get_lifecycle_manager(request: Request) -> SubscriptionLifecycleManager:
    """Provide the subscription lifecycle manager."""
    return get_robot_services(request).lifecycle_manager


def get_subscription_record_store(request: Request) -> SubscriptionRecordStore:
    """Provide the subscription record store."""
    return get_robot_services(request).record_store


__all__ = [
    "RobotServices",
    "build_robot_services",
    "get_lifecycle_manager",
    "get_robot_services",
    "get_subscription_record_store",
]
