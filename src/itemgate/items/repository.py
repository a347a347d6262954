"""Item storage backends."""

from __future__ import annotations

from typing import Any, Protocol

from itemgate.common.errors import ItemNotFoundError, ItemValidationError
from itemgate.common.logging import get_logger
from itemgate.common.settings import Settings

logger = get_logger(__name__)

SEED_ITEMS: tuple[str, ...] = ("Example Item 1", "Example Item 2")


def validate_name(name: Any, message: str = "Item name is required") -> str:
    """Return ``name`` if it is a non-empty string."""
    if not isinstance(name, str) or not name:
        raise ItemValidationError(message)
    return name


class ItemRepository(Protocol):
    """Persistence contract for ``{id, name}`` records."""

    async def find_all(self) -> list[dict[str, Any]]: ...

    async def find_by_id(self, item_id: int) -> dict[str, Any]: ...

    async def create(self, name: Any) -> dict[str, Any]: ...

    async def update(self, item_id: int, name: Any) -> dict[str, Any]: ...

    async def delete(self, item_id: int) -> dict[str, Any]: ...


class InMemoryItemRepository:
    """Process-local item store. Ids increase monotonically and are never reused."""

    def __init__(self, seed: bool = True) -> None:
        self._items: dict[int, dict[str, Any]] = {}
        self._next_id = 1
        if seed:
            for name in SEED_ITEMS:
                self._insert(name)

    def _insert(self, name: str) -> dict[str, Any]:
        item = {"id": self._next_id, "name": name}
        self._items[self._next_id] = item
        self._next_id += 1
        return item

    async def find_all(self) -> list[dict[str, Any]]:
        """Get all items in insertion order."""
        return [dict(item) for item in self._items.values()]

    async def find_by_id(self, item_id: int) -> dict[str, Any]:
        """Get an item by id."""
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return dict(item)

    async def create(self, name: Any) -> dict[str, Any]:
        """Create an item and assign the next id."""
        item = self._insert(validate_name(name))
        logger.debug("Created item", item_id=item["id"])
        return dict(item)

    async def update(self, item_id: int, name: Any) -> dict[str, Any]:
        """Rename an existing item."""
        name = validate_name(name, "Item name is required for update")
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        item["name"] = name
        return dict(item)

    async def delete(self, item_id: int) -> dict[str, Any]:
        """Delete an item and return it."""
        item = self._items.pop(item_id, None)
        if item is None:
            raise ItemNotFoundError(item_id)
        logger.debug("Deleted item", item_id=item_id)
        return item


def create_repository(settings: Settings) -> ItemRepository:
    """Build the item store selected by ``item_storage``."""
    if settings.item_storage == "sqlite":
        from itemgate.items.repository_sqlite import SqliteItemRepository

        return SqliteItemRepository(settings.item_sqlite_path, seed=settings.item_seed)
    return InMemoryItemRepository(seed=settings.item_seed)
