"""
DynamoDB keyed store for token caches and subscription state.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from app.clients.keyed_store import Item, ItemPredicate, StoreError, require_keys


class DynamoDBStore:
    """Keyed record store over a DynamoDB table with ``pk``/``sk`` keys."""

    def __init__(self, table_name: str, *, region_name: str) -> None:
        self._resource = boto3.resource("dynamodb", region_name=region_name)
        self._table = self._resource.Table(table_name)
        self._table_name = table_name

    @property
    def table_name(self) -> str:
        return self._table_name

    def put_item(self, item: Item) -> None:
        """Put an item in the DynamoDB table, replacing any previous version."""
        pk, sk = require_keys(item)
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to write {pk}/{sk}: {exc}") from exc

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Item]:
        """Retrieve an item using its key."""
        key: Dict[str, Any] = {"pk": partition_key, "sk": sort_key}
        try:
            response = self._table.get_item(Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(
                f"Failed to read {partition_key}/{sort_key}: {exc}"
            ) from exc
        return response.get("Item")

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        """Delete an item; DynamoDB treats a missing key as success."""
        try:
            self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(
                f"Failed to delete {partition_key}/{sort_key}: {exc}"
            ) from exc

    def find_item(
        self, *, partition_key: str, predicate: ItemPredicate
    ) -> Optional[Item]:
        """Return the first item in the partition that satisfies ``predicate``."""
        query_kwargs: Dict[str, Any] = {
            "KeyConditionExpression": Key("pk").eq(partition_key)
        }
        try:
            while True:
                response = self._table.query(**query_kwargs)
                for item in response.get("Items", []):
                    if predicate(item):
                        return item
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return None
                query_kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to scan partition {partition_key}: {exc}") from exc


__all__ = ["DynamoDBStore"]
