"""Contract shared by the (partition, row) keyed record stores."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol

Item = Dict[str, Any]
ItemPredicate = Callable[[Item], bool]


class StoreError(Exception):
    """Raised when the backing store cannot complete a read or write."""


class KeyedStore(Protocol):
    """Point lookup, upsert, delete and a filtered scan over ``(pk, sk)`` items."""

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Item]:
        ...

    def put_item(self, item: Item) -> None:
        ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        ...

    def find_item(
        self, *, partition_key: str, predicate: ItemPredicate
    ) -> Optional[Item]:
        ...


def require_keys(item: Item) -> tuple[str, str]:
    """Return the ``(pk, sk)`` pair of an item, rejecting incomplete keys."""
    pk = item.get("pk")
    sk = item.get("sk")
    if not pk or not sk:
        raise ValueError("Item must include 'pk' and 'sk' keys")
    return pk, sk


__all__ = ["Item", "ItemPredicate", "KeyedStore", "StoreError", "require_keys"]
