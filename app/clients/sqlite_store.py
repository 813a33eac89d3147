"""SQLite-backed keyed store used for local and single-node deployments."""

from __future__ import annotations

import json
import re
import sqlite3
from pathlib import Path
from typing import Optional

from app.clients.keyed_store import Item, ItemPredicate, StoreError, require_keys

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteStore:
    """Keyed record store using one table per logical store, keyed by (pk, sk)."""

    def __init__(self, db_path: str, table_name: str = "kv_records") -> None:
        if not _TABLE_NAME.match(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        self._db_path = Path(db_path)
        self._table = table_name
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def table_name(self) -> str:
        return self._table

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._table} (
                        pk TEXT NOT NULL,
                        sk TEXT NOT NULL,
                        data TEXT NOT NULL,
                        PRIMARY KEY (pk, sk)
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to prepare table {self._table}: {exc}") from exc

    def put_item(self, item: Item) -> None:
        pk, sk = require_keys(item)
        data_json = json.dumps(item)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO {self._table} (pk, sk, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                    """,
                    (pk, sk, data_json),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write {pk}/{sk}: {exc}") from exc

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Item]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT data FROM {self._table} WHERE pk = ? AND sk = ?",
                    (partition_key, sort_key),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to read {partition_key}/{sort_key}: {exc}"
            ) from exc
        if not row:
            return None
        return json.loads(row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    f"DELETE FROM {self._table} WHERE pk = ? AND sk = ?",
                    (partition_key, sort_key),
                )
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to delete {partition_key}/{sort_key}: {exc}"
            ) from exc

    def find_item(
        self, *, partition_key: str, predicate: ItemPredicate
    ) -> Optional[Item]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT data FROM {self._table} WHERE pk = ? ORDER BY sk",
                    (partition_key,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to scan partition {partition_key}: {exc}") from exc
        for row in rows:
            item = json.loads(row["data"])
            if predicate(item):
                return item
        return None


__all__ = ["SQLiteStore"]
