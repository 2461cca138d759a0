"""Background tasks that write items through the DAO."""

import logging
from abc import abstractmethod
from typing import Any

from common.tasks import BaseTask
from inventory.models.item import Item
from inventory.services.item_dao import ItemDao

logger = logging.getLogger(__name__)


class ItemWriteTask(BaseTask):
    """Runs one DAO write unless cancelled before it starts."""

    def __init__(self, item_dao: ItemDao, item: Item) -> None:
        super().__init__()
        self.item_dao = item_dao
        self.item = item

    def execute(self, **kwargs: Any) -> None:
        if self.is_cancelled:
            logger.debug(f"{type(self).__name__} for {self.item!r} cancelled before writing")
            return

        self.write(self.item)

    @abstractmethod
    def write(self, item: Item) -> None:
        pass


class InsertItemTask(ItemWriteTask):
    def write(self, item: Item) -> None:
        self.item_dao.insert(item)


class UpdateItemTask(ItemWriteTask):
    def write(self, item: Item) -> None:
        self.item_dao.update(item)


class DeleteItemTask(ItemWriteTask):
    def write(self, item: Item) -> None:
        self.item_dao.delete(item)
