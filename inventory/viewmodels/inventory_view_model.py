"""View-model mediating between an inventory UI and the item store."""

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from common.live import LiveData, MutableLiveData, Subscription
from common.tasks import Job, TaskScope, TaskService
from inventory.models.item import Item
from inventory.services.item_dao import ItemDao
from inventory.services.item_tasks import DeleteItemTask, InsertItemTask, UpdateItemTask

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


def _parse_number(text: str, convert: Callable[[str], N]) -> N:
    # Form input is taken literally: no padding, no digit separators
    if text != text.strip() or "_" in text:
        raise ValueError(f"Not a plain number: {text!r}")
    return convert(text)


class InventoryViewModel:
    """Exposes the item list to a UI and performs its writes in the background.

    Every write is launched on a task scope owned by the view-model. close()
    cancels that scope, so nothing queued by this view-model touches the store
    afterwards, and detaches every live query it subscribed to.
    """

    def __init__(self, item_dao: ItemDao, task_service: TaskService) -> None:
        self.item_dao = item_dao
        self.scope = TaskScope(task_service, name=type(self).__name__)
        self._all_items: MutableLiveData[list[Item]] = MutableLiveData()
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._closed = False

        self._track(self.item_dao.get_items().observe(self._all_items.set_value))

    @property
    def all_items(self) -> LiveData[list[Item]]:
        """All items ordered by name, updated after every committed change."""
        return self._all_items

    def retrieve_item(self, item_id: int) -> LiveData[Item | None]:
        item: MutableLiveData[Item | None] = MutableLiveData()
        self._track(self.item_dao.get_item(item_id).observe(item.set_value))
        return item

    def add_new_item(self, item_name: str, item_price: str, item_count: str) -> Job:
        """Insert a new item built from raw form input.

        Raises:
            ValueError: If item_price or item_count is not a plain number
        """
        new_item = self._get_new_item_entry(item_name, item_price, item_count)
        return self.scope.launch(InsertItemTask(self.item_dao, new_item))

    def update_item(self, item: Item) -> Job:
        return self.scope.launch(UpdateItemTask(self.item_dao, item))

    def delete_item(self, item: Item) -> Job:
        return self.scope.launch(DeleteItemTask(self.item_dao, item))

    def is_entry_valid(self, item_name: str, item_price: str, item_count: str) -> bool:
        if not item_name.strip() or not item_price.strip() or not item_count.strip():
            return False
        return True

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscriptions, self._subscriptions = self._subscriptions, []

        self.scope.cancel()
        for subscription in subscriptions:
            subscription.cancel()

        logger.debug(f"{type(self).__name__} closed")

    def _get_new_item_entry(self, item_name: str, item_price: str, item_count: str) -> Item:
        return Item(
            item_name=item_name,
            item_price=_parse_number(item_price, float),
            quantity_in_stock=_parse_number(item_count, int),
        )

    def _track(self, subscription: Subscription) -> None:
        with self._lock:
            if not self._closed:
                self._subscriptions.append(subscription)
                return

        subscription.cancel()

    def __enter__(self) -> "InventoryViewModel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
