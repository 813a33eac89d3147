"""
Explicit construction of the store handles shared by the robot services.

Stores are built once at process start from settings and passed down to the
services that need them; nothing opens a store lazily on first use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.clients.dynamodb import DynamoDBStore
from app.clients.keyed_store import KeyedStore
from app.clients.sqlite_store import SQLiteStore
from app.core.config import StorageSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageContext:
    """Store handles for token caches and subscription state."""

    token_cache_store: KeyedStore
    sync_state_store: KeyedStore


def build_storage_context(settings: StorageSettings) -> StorageContext:
    """Open the configured backend for both logical stores."""
    if settings.backend == "dynamodb":
        logger.info(
            "Using DynamoDB tables %s/%s",
            settings.token_cache_table,
            settings.sync_state_table,
        )
        return StorageContext(
            token_cache_store=DynamoDBStore(
                settings.token_cache_table, region_name=settings.region_name
            ),
            sync_state_store=DynamoDBStore(
                settings.sync_state_table, region_name=settings.region_name
            ),
        )

    logger.info("Using SQLite store at %s", settings.sqlite_path)
    return StorageContext(
        token_cache_store=SQLiteStore(
            settings.sqlite_path, table_name=settings.token_cache_table
        ),
        sync_state_store=SQLiteStore(
            settings.sqlite_path, table_name=settings.sync_state_table
        ),
    )


__all__ = ["StorageContext", "build_storage_context"]
