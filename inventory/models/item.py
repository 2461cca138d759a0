"""Item model."""

from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from inventory.models.base import Base


class Item(Base):
    """A stocked item: name, unit price and quantity on hand.

    Instances handed out by the store are detached snapshots. Build a changed
    row with copy() and pass it to ItemDao.update(). Persisted items compare
    equal when their ids match; an item without an id only equals itself.
    """

    __tablename__ = "item"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    item_name: Mapped[str] = mapped_column("itemName", sa.Text, nullable=False)
    item_price: Mapped[float] = mapped_column("itemPrice", sa.REAL, nullable=False)
    quantity_in_stock: Mapped[int] = mapped_column("quantityInStock", sa.Integer, nullable=False)

    def copy(self, **changes: Any) -> "Item":
        values: dict[str, Any] = {
            "id": self.id,
            "item_name": self.item_name,
            "item_price": self.item_price,
            "quantity_in_stock": self.quantity_in_stock,
        }
        values.update(changes)
        return Item(**values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return self.id == other.id

    def __hash__(self) -> int:
        if self.id is None:
            return object.__hash__(self)
        return hash((Item, self.id))

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.item_name!r}>"
