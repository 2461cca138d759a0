"""Data access object for the item table."""

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.sql import Executable

from inventory.models.item import Item

if TYPE_CHECKING:
    from common.live import LiveQuery
    from inventory.database import InventoryDatabase

logger = logging.getLogger(__name__)

ITEM_TABLE = Item.__tablename__

item_table = Item.__table__


def _row_values(item: Item) -> dict[str, Any]:
    return {
        "itemName": item.item_name,
        "itemPrice": item.item_price,
        "quantityInStock": item.quantity_in_stock,
    }


class ItemDao:
    """Insert, update and delete items; observe them through live queries.

    Writes block on the store and belong on a background thread. Writes that
    match nothing (a duplicate id on insert, a missing row on update or
    delete) are silent no-ops. Caller-owned Item instances are never attached
    to a session.
    """

    def __init__(self, database: "InventoryDatabase") -> None:
        self.database = database

    def insert(self, item: Item) -> None:
        values = _row_values(item)
        if item.id is not None:
            values["id"] = item.id

        stmt = insert(item_table).values(**values).on_conflict_do_nothing(
            index_elements=[item_table.c.id]
        )
        self._write("insert", stmt)

    def update(self, item: Item) -> None:
        if item.id is None:
            return

        stmt = update(item_table).where(item_table.c.id == item.id).values(**_row_values(item))
        self._write("update", stmt)

    def delete(self, item: Item) -> None:
        if item.id is None:
            return

        stmt = delete(item_table).where(item_table.c.id == item.id)
        self._write("delete", stmt)

    def get_item(self, item_id: int) -> "LiveQuery[Item | None]":
        """Live view of one item; emits None while the row does not exist."""

        def query() -> Item | None:
            with self.database.session() as session:
                return session.get(Item, item_id)

        return self.database.create_live_query("item", [ITEM_TABLE], query)

    def get_items(self) -> "LiveQuery[list[Item]]":
        """Live view of all items ordered by name."""

        def query() -> list[Item]:
            with self.database.session() as session:
                return list(session.scalars(select(Item).order_by(Item.item_name, Item.id)))

        return self.database.create_live_query("items", [ITEM_TABLE], query)

    def _write(self, operation: str, stmt: Executable) -> None:
        with self.database.transaction() as session:
            affected = session.execute(stmt).rowcount  # type: ignore[attr-defined]

        logger.debug(f"Item {operation} affected {affected} row(s)")

        if affected:
            self.database.invalidation_tracker.notify(ITEM_TABLE)
