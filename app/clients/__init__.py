"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBStore
from .graph import GraphAPIError, GraphClient
from .keyed_store import KeyedStore, StoreError
from .sqlite_store import SQLiteStore

__all__ = [
    "DynamoDBStore",
    "GraphAPIError",
    "GraphClient",
    "KeyedStore",
    "SQLiteStore",
    "StoreError",
]
