"""SQLite-backed item store for persistence across restarts."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from itemgate.common.errors import ItemNotFoundError
from itemgate.items.repository import SEED_ITEMS, validate_name


class SqliteItemRepository:
    """SQLite store implementing the item repository contract."""

    def __init__(self, path: str, seed: bool = True) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS items ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT,"
            "name TEXT NOT NULL"
            ")"
        )
        self._conn.commit()
        if seed and self._count() == 0:
            self._conn.executemany(
                "INSERT INTO items (name) VALUES (?)",
                [(name,) for name in SEED_ITEMS],
            )
            self._conn.commit()

    def _count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM items").fetchone()
        return int(row[0])

    def _row(self, item_id: int) -> dict[str, Any]:
        row = self._conn.execute(
            "SELECT id, name FROM items WHERE id = ?",
            (item_id,),
        ).fetchone()
        if not row:
            raise ItemNotFoundError(item_id)
        return {"id": row[0], "name": row[1]}

    def close(self) -> None:
        self._conn.close()

    async def find_all(self) -> list[dict[str, Any]]:
        rows = self._conn.execute("SELECT id, name FROM items ORDER BY id").fetchall()
        return [{"id": item_id, "name": name} for item_id, name in rows]

    async def find_by_id(self, item_id: int) -> dict[str, Any]:
        return self._row(item_id)

    async def create(self, name: Any) -> dict[str, Any]:
        name = validate_name(name)
        cursor = self._conn.execute("INSERT INTO items (name) VALUES (?)", (name,))
        self._conn.commit()
        return {"id": cursor.lastrowid, "name": name}

    async def update(self, item_id: int, name: Any) -> dict[str, Any]:
        name = validate_name(name, "Item name is required for update")
        cursor = self._conn.execute("UPDATE items SET name = ? WHERE id = ?", (name, item_id))
        self._conn.commit()
        if cursor.rowcount == 0:
            raise ItemNotFoundError(item_id)
        return {"id": item_id, "name": name}

    async def delete(self, item_id: int) -> dict[str, Any]:
        item = self._row(item_id)
        self._conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        self._conn.commit()
        return item
