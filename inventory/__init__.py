"""Inventory item store with live queries and a lifecycle-scoped view-model.

Typical use:

    from inventory import create_container

    container = create_container()
    view_model = container.inventory_view_model()
    view_model.all_items.observe(render)
    view_model.add_new_item("Widget", "2.50", "10")
"""

from inventory.container import AppContainer, create_container

__all__ = ["AppContainer", "create_container"]
