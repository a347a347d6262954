"""Item resource storage."""

from itemgate.items.repository import InMemoryItemRepository, ItemRepository, create_repository

__all__ = [
    "InMemoryItemRepository",
    "ItemRepository",
    "create_repository",
]
