"""Inventory models.

Import all SQLAlchemy models here so they are registered on Base.metadata
before the schema is created.
"""

from inventory.models.base import Base
from inventory.models.item import Item

__all__ = ["Base", "Item"]
