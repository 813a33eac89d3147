"""Pytest configuration and fakes shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy
from typing import Any, Callable, Dict, Optional

import pytest

from app.clients.keyed_store import StoreError
from app.core.context import StorageContext


class MemoryStore:
    """Dict-backed keyed store that can be told to fail reads or writes."""

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], Dict[str, Any]] = {}
        self.writes: list[Dict[str, Any]] = []
        self.deletes: list[tuple[str, str]] = []
        self.fail_reads = False
        self.fail_writes = False
        self.fail_deletes = False

    def put_item(self, item: Dict[str, Any]) -> None:
        if self.fail_writes:
            raise StoreError("write refused")
        self.writes.append(copy.deepcopy(item))
        self.items[(item["pk"], item["sk"])] = copy.deepcopy(item)

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        if self.fail_reads:
            raise StoreError("read refused")
        item = self.items.get((partition_key, sort_key))
        return copy.deepcopy(item) if item else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        if self.fail_writes or self.fail_deletes:
            raise StoreError("delete refused")
        self.deletes.append((partition_key, sort_key))
        self.items.pop((partition_key, sort_key), None)

    def find_item(
        self, *, partition_key: str, predicate: Callable[[Dict[str, Any]], bool]
    ) -> Optional[Dict[str, Any]]:
        if self.fail_reads:
            raise StoreError("scan refused")
        for (pk, _), item in sorted(self.items.items()):
            if pk == partition_key and predicate(item):
                return copy.deepcopy(item)
        return None

    def partition(self, partition_key: str) -> list[Dict[str, Any]]:
        return [item for (pk, _), item in sorted(self.items.items()) if pk == partition_key]


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def memory_storage() -> StorageContext:
    """Storage context whose token cache and sync state live in separate dicts."""
    return StorageContext(token_cache_store=MemoryStore(), sync_state_store=MemoryStore())
