from __future__ import annotations

import logging

from itemvault.errors import ItemNotFound
from itemvault.models.item import Item
from itemvault.repositories.base import ItemRepository

logger = logging.getLogger(__name__)


class ItemService:
    def __init__(self, repo: ItemRepository) -> None:
        self.repo = repo

    def create_item(self, user_id: int, name: str, description: str | None = None) -> Item:
        result = self.repo.create(Item(name=name, description=description, user_id=user_id))
        logger.info("Item created: id=%s, user=%s", result.id, user_id)
        return result

    def list_items(self, user_id: int) -> list[Item]:
        result = self.repo.list_by_owner(user_id)
        logger.debug("Listed %d items for user=%s", len(result), user_id)
        return result

    def get_item(self, item_id: int, user_id: int) -> Item:
        item = self.repo.get_for_owner(item_id, user_id)
        if item is None:
            logger.debug("get_item id=%s user=%s not found", item_id, user_id)
            raise ItemNotFound()
        return item

    def update_item(self, item_id: int, user_id: int, name: str, description: str | None = None) -> Item:
        item = self.get_item(item_id, user_id)
        item.name = name
        item.description = description
        result = self.repo.update(item)
        logger.info("Item updated: id=%s, user=%s", item_id, user_id)
        return result

    def delete_item(self, item_id: int, user_id: int) -> None:
        self.get_item(item_id, user_id)
        self.repo.delete(item_id, user_id)
        logger.info("Item deleted: id=%s, user=%s", item_id, user_id)
